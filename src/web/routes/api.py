from __future__ import annotations

import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException

from ..api_models import (
    DetectionsResponse,
    HealthResponse,
    MedicineModel,
    RecognitionResponse,
    ScanModel,
    StatusResponse,
)
from ..state import state

router = APIRouter()

# Seconds without a processed frame before the camera is considered stale/offline.
STALE_FRAME_AGE = 2.0
OFFLINE_FRAME_AGE = 10.0


def _derive_status(last_frame_age: Optional[float], systemic_failure: bool, last_frame_status: Optional[str]):
    """
    Lightweight status classifier used by /api/status.
    A sticky systemic failure wins over frame freshness.
    """
    level = "running"
    warnings: List[str] = []
    if last_frame_age is None or last_frame_age > OFFLINE_FRAME_AGE:
        level = "offline"
        warnings.append("camera_offline")
    elif last_frame_age > STALE_FRAME_AGE:
        level = "degraded"
        warnings.append("camera_stale")

    if last_frame_status and last_frame_status != "ok":
        warnings.append(f"last_frame_{last_frame_status}")
        if level == "running":
            level = "degraded"

    if systemic_failure:
        level = "failed"
        warnings.append("systemic_failure")

    return level, warnings


def _require_database():
    if state.database is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return state.database


@router.get("/health", response_model=HealthResponse)
def health():
    engine = state.engine
    return {
        "status": "ok",
        "engine_running": bool(engine is not None and engine.running),
        "database": state.database is not None,
        "timestamp": time.time(),
    }


@router.get("/status", response_model=StatusResponse)
def status():
    """
    Aggregate pipeline status for the UI.
    Fields:
    - status: running|degraded|failed|offline
    - warnings: camera_offline, camera_stale, last_frame_<kind>, systemic_failure
    - last_frame_age_s: seconds since the last processed frame (None if never)
    - systemic_failure: sticky flag raised by the engine
    - stats: engine counters (submitted, processed, dropped, throttled, ...)
    """
    now = time.time()
    sys_stats = state.get_system_stats_copy()
    start_time = sys_stats.get("start_time") or None
    last_frame_ts = sys_stats.get("last_frame_ts")
    last_frame_age = now - last_frame_ts if last_frame_ts else None

    stats = state.get_engine_stats() or {}
    systemic_failure = bool(stats.get("systemic_failure", False))
    last_frame_status = state.get_last_status()
    level, warnings = _derive_status(last_frame_age, systemic_failure, last_frame_status)

    return {
        "status": level,
        "warnings": warnings,
        "last_frame_age_s": last_frame_age,
        "last_frame_status": last_frame_status,
        "uptime_seconds": int(now - start_time) if start_time else None,
        "systemic_failure": systemic_failure,
        "systemic_failure_kind": stats.get("systemic_failure_kind"),
        "stats": stats,
        "timestamp": now,
    }


@router.post("/status/reset")
def reset_failure_state():
    """Clear the sticky systemic-failure flag."""
    if state.engine is None:
        raise HTTPException(status_code=503, detail="Engine not running")
    state.engine.reset_failure_state()
    return {"ok": True}


@router.get("/detections", response_model=DetectionsResponse)
def detections():
    notification = state.get_notification()
    return {
        "detections": [d.to_dict() for d in state.get_detections()],
        "notification": notification.to_dict() if notification is not None else None,
        "timestamp": time.time(),
    }


@router.get("/recognition", response_model=RecognitionResponse)
def recognition():
    result = state.get_recognition()
    if result is None:
        return {"available": False}
    return {"available": True, **result.to_dict()}


@router.get("/scans", response_model=List[ScanModel])
def list_scans(limit: Optional[int] = None):
    db = _require_database()
    return [scan.to_dict() for scan in db.list_scans(limit=limit)]


@router.delete("/scans/{scan_id}")
def delete_scan(scan_id: int):
    db = _require_database()
    if db.delete_scan(scan_id) == 0:
        raise HTTPException(status_code=404, detail=f"Scan {scan_id} not found")
    return {"deleted": scan_id}


@router.delete("/scans")
def clear_scans():
    db = _require_database()
    return {"deleted": db.clear_scans()}


@router.get("/medicines/{medicine_id}", response_model=MedicineModel)
def get_medicine(medicine_id: int):
    db = _require_database()
    medicine = db.get_by_id(medicine_id)
    if medicine is None:
        raise HTTPException(status_code=404, detail=f"Medicine {medicine_id} not found")
    return medicine.to_dict()
