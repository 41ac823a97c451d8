"""
Medicine reference records and scan history entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Medicine:
    """A medicine reference record looked up after a confirmed detection."""
    id: int
    pill_label: str = ""
    generic_name: str = ""
    brand_name: str = ""
    manufacturer: str = ""
    medical_use: str = ""
    dosage_guidelines: str = ""
    warnings: str = ""
    additional_info: str = ""
    prescription_required: bool = False
    legal_status: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Medicine":
        """Adapter: Create from a database row mapping."""
        return cls(
            id=int(row["id"]),
            pill_label=row.get("pill_label") or "",
            generic_name=row.get("generic_name") or "",
            brand_name=row.get("brand_name") or "",
            manufacturer=row.get("manufacturer") or "",
            medical_use=row.get("medical_use") or "",
            dosage_guidelines=row.get("dosage_guidelines") or "",
            warnings=row.get("warnings") or "",
            additional_info=row.get("additional_info") or "",
            prescription_required=bool(row.get("prescription_required") or 0),
            legal_status=row.get("legal_status") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pill_label": self.pill_label,
            "generic_name": self.generic_name,
            "brand_name": self.brand_name,
            "manufacturer": self.manufacturer,
            "medical_use": self.medical_use,
            "dosage_guidelines": self.dosage_guidelines,
            "warnings": self.warnings,
            "additional_info": self.additional_info,
            "prescription_required": self.prescription_required,
            "legal_status": self.legal_status,
        }


@dataclass(frozen=True)
class ScanRecord:
    """One entry of the scan history."""
    id: int
    medicine_id: int
    scan_date: str
    brand_name: str
    generic_name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ScanRecord":
        return cls(
            id=int(row["id"]),
            medicine_id=int(row["medicine_id"]),
            scan_date=row["scan_date"],
            brand_name=row.get("brand_name") or "",
            generic_name=row.get("generic_name") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medicine_id": self.medicine_id,
            "scan_date": self.scan_date,
            "brand_name": self.brand_name,
            "generic_name": self.generic_name,
        }
