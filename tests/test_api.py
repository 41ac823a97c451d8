"""
Tests for the status API.
"""

import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from models.detection import Detection
from models.medicine import Medicine
from models.recognition import RecognitionResult
from pipeline.engine import RecognitionStore
from pipeline.processor import FrameOutcome, FrameStatus
from storage.database import MedicineDatabase
from web.app import create_app
from web.routes.api import _derive_status
from web.state import state


@pytest.fixture
def client():
    state.reset()
    yield TestClient(create_app())
    state.reset()


@pytest.fixture
def db(tmp_path):
    database = MedicineDatabase(str(tmp_path / "pills.sqlite"))
    database.initialize()
    state.set_database(database)
    yield database
    database.close()


@pytest.fixture
def engine():
    eng = MagicMock()
    eng.running = True
    eng.recognition = RecognitionStore()
    eng.stats_snapshot.return_value = {
        "frames_processed": 10,
        "systemic_failure": False,
        "systemic_failure_kind": None,
    }
    state.set_engine(eng)
    return eng


def _detection(conf=0.9):
    return Detection.from_xyxy(10, 20, 110, 220, confidence=conf, class_id=0, class_name="biogesic-para")


class TestDeriveStatus:
    def test_running(self):
        assert _derive_status(0.5, False, "ok") == ("running", [])

    def test_never_seen_a_frame(self):
        assert _derive_status(None, False, None) == ("offline", ["camera_offline"])

    def test_stale(self):
        level, warnings = _derive_status(5.0, False, "ok")
        assert level == "degraded"
        assert warnings == ["camera_stale"]

    def test_failed_frame(self):
        level, warnings = _derive_status(0.1, False, "shape_mismatch")
        assert level == "degraded"
        assert "last_frame_shape_mismatch" in warnings

    def test_systemic_failure_wins(self):
        level, warnings = _derive_status(0.1, True, "inference_failure")
        assert level == "failed"
        assert "systemic_failure" in warnings


class TestHealthAndStatus:
    def test_health(self, client, engine):
        data = client.get("/api/health").json()

        assert data["status"] == "ok"
        assert data["engine_running"] is True
        assert data["database"] is False

    def test_status_running(self, client, engine):
        state.update_system_stats({"start_time": time.time() - 60})
        state.apply_outcome(FrameOutcome(frame_index=1, timestamp=0.0, status=FrameStatus.OK))

        data = client.get("/api/status").json()

        assert data["status"] == "running"
        assert data["last_frame_status"] == "ok"
        assert data["uptime_seconds"] >= 59
        assert data["stats"]["frames_processed"] == 10

    def test_status_offline_without_frames(self, client):
        data = client.get("/api/status").json()

        assert data["status"] == "offline"
        assert data["uptime_seconds"] is None

    def test_reset_requires_engine(self, client):
        assert client.post("/api/status/reset").status_code == 503

    def test_reset(self, client, engine):
        assert client.post("/api/status/reset").json() == {"ok": True}
        engine.reset_failure_state.assert_called_once()


class TestDetections:
    def test_empty(self, client):
        data = client.get("/api/detections").json()
        assert data["detections"] == []
        assert data["notification"] is None

    def test_latest_outcome(self, client):
        det = _detection()
        state.apply_outcome(
            FrameOutcome(frame_index=1, timestamp=0.0, status=FrameStatus.OK, detections=[det], notification=det)
        )

        data = client.get("/api/detections").json()

        assert data["detections"][0]["box"] == [10, 20, 110, 220]
        assert data["notification"]["class_name"] == "biogesic-para"

    def test_failed_frame_keeps_display(self, client):
        state.apply_outcome(
            FrameOutcome(frame_index=1, timestamp=0.0, status=FrameStatus.OK, detections=[_detection()])
        )
        state.apply_outcome(
            FrameOutcome(frame_index=2, timestamp=0.0, status=FrameStatus.INFERENCE_FAILURE, error="x")
        )

        assert len(client.get("/api/detections").json()["detections"]) == 1

    def test_unsupported_frame_clears_display(self, client):
        state.apply_outcome(
            FrameOutcome(frame_index=1, timestamp=0.0, status=FrameStatus.OK, detections=[_detection()])
        )
        state.apply_outcome(
            FrameOutcome(frame_index=2, timestamp=0.0, status=FrameStatus.FORMAT_UNSUPPORTED, error="x")
        )

        assert client.get("/api/detections").json()["detections"] == []


class TestRecognition:
    def test_unavailable(self, client):
        assert client.get("/api/recognition").json()["available"] is False

    def test_latest_snapshot(self, client, engine):
        engine.recognition.publish(
            RecognitionResult(success=True, recognized_text="BIOGESIC", brand_name="BIOGESIC")
        )

        data = client.get("/api/recognition").json()

        assert data["available"] is True
        assert data["brand_name"] == "BIOGESIC"


class TestScans:
    def test_requires_database(self, client):
        assert client.get("/api/scans").status_code == 503

    def test_list_and_delete(self, client, db):
        scan_id = db.record_scan(1, "Biogesic", "Paracetamol")
        db.record_scan(2, "RiteMed", "Paracetamol")

        scans = client.get("/api/scans", params={"limit": 1}).json()
        assert len(scans) == 1

        assert client.delete(f"/api/scans/{scan_id}").json() == {"deleted": scan_id}
        assert client.delete(f"/api/scans/{scan_id}").status_code == 404
        assert client.delete("/api/scans").json() == {"deleted": 1}

    def test_medicine_lookup(self, client, db):
        db.upsert_medicine(Medicine(id=1, brand_name="Biogesic", generic_name="Paracetamol"))

        assert client.get("/api/medicines/1").json()["brand_name"] == "Biogesic"
        assert client.get("/api/medicines/9").status_code == 404
