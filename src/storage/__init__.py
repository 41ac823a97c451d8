"""
Storage for medicine reference data and scan history.
"""

from .database import EXPECTED_SCHEMA_VERSION, MedicineDatabase

__all__ = ["EXPECTED_SCHEMA_VERSION", "MedicineDatabase"]
