from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    engine_running: bool
    database: bool
    timestamp: float


class StatusResponse(BaseModel):
    status: str = Field(..., description="running|degraded|failed|offline")
    warnings: List[str] = Field(default_factory=list, description="Active warnings")
    last_frame_age_s: Optional[float] = Field(None, description="Seconds since last processed frame")
    last_frame_status: Optional[str] = Field(None, description="Status of the last processed frame")
    uptime_seconds: Optional[int] = None
    systemic_failure: bool = False
    systemic_failure_kind: Optional[str] = None
    stats: Dict[str, Any] = Field(default_factory=dict, description="Engine counters")
    timestamp: float


class DetectionModel(BaseModel):
    box: List[int] = Field(..., description="[x1, y1, x2, y2] in viewport pixels")
    confidence: float
    adjusted_confidence: Optional[float] = None
    class_id: int
    class_name: str
    recognized_brand_name: Optional[str] = None
    expiry_date: Optional[str] = None


class DetectionsResponse(BaseModel):
    detections: List[DetectionModel]
    notification: Optional[DetectionModel] = None
    timestamp: float


class RecognitionResponse(BaseModel):
    available: bool
    success: Optional[bool] = None
    recognized_text: Optional[str] = None
    brand_name: Optional[str] = None
    expiry_date: Optional[str] = None
    error_message: Optional[str] = None
    timestamp: Optional[float] = None


class ScanModel(BaseModel):
    id: int
    medicine_id: int
    scan_date: str
    brand_name: str
    generic_name: str


class MedicineModel(BaseModel):
    id: int
    pill_label: str
    generic_name: str
    brand_name: str
    manufacturer: str
    medical_use: str
    dosage_guidelines: str
    warnings: str
    additional_info: str
    prescription_required: bool
    legal_status: str
