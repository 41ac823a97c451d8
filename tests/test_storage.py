"""
Tests for the medicine database.
"""

from datetime import datetime

import pytest

from models.medicine import Medicine
from storage.database import EXPECTED_SCHEMA_VERSION, MedicineDatabase


@pytest.fixture
def db(tmp_path):
    database = MedicineDatabase(str(tmp_path / "data" / "pills.sqlite"))
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def biogesic():
    return Medicine(
        id=1,
        pill_label="biogesic-para",
        generic_name="Paracetamol",
        brand_name="Biogesic",
        manufacturer="Unilab",
        prescription_required=False,
    )


class TestSchema:
    def test_creates_parent_directory(self, tmp_path):
        MedicineDatabase(str(tmp_path / "nested" / "dir" / "db.sqlite"))
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_schema_version_recorded(self, db):
        row = db._get_connection().execute("SELECT schema_version FROM schema_meta").fetchone()
        assert row[0] == EXPECTED_SCHEMA_VERSION

    def test_initialize_is_idempotent(self, db, biogesic):
        db.upsert_medicine(biogesic)
        db.record_scan(1, "Biogesic", "Paracetamol")

        db.initialize()

        assert len(db.list_scans()) == 1

    def test_version_mismatch_recreates_history(self, db, biogesic):
        db.upsert_medicine(biogesic)
        db.record_scan(1, "Biogesic", "Paracetamol")
        conn = db._get_connection()
        conn.execute("UPDATE schema_meta SET schema_version = 1")
        conn.commit()

        db.initialize()

        assert db.list_scans() == []
        assert db.get_by_id(1) == biogesic


class TestMedicines:
    def test_lookup_by_id(self, db, biogesic):
        db.upsert_medicine(biogesic)

        assert db.get_by_id(1) == biogesic
        assert db.get_by_id(2) is None

    def test_lookup_by_name(self, db, biogesic):
        db.upsert_medicine(biogesic)

        assert db.get_by_name("bioges") == biogesic
        assert db.get_by_name("paracetamol") == biogesic
        assert db.get_by_name("ibuprofen") is None

    def test_upsert_replaces(self, db, biogesic):
        db.upsert_medicine(biogesic)
        db.upsert_medicine(Medicine(id=1, brand_name="Biogesic Forte", prescription_required=True))

        updated = db.get_by_id(1)
        assert updated.brand_name == "Biogesic Forte"
        assert updated.prescription_required is True


class TestScanHistory:
    def test_record_and_list_newest_first(self, db):
        first = db.record_scan(1, "Biogesic", "Paracetamol", datetime(2026, 1, 1, 9, 0))
        second = db.record_scan(2, "RiteMed", "Paracetamol", datetime(2026, 1, 2, 9, 0))

        scans = db.list_scans()

        assert [s.id for s in scans] == [second, first]
        assert scans[0].brand_name == "RiteMed"
        assert scans[1].scan_date == "2026-01-01T09:00:00"

    def test_list_limit(self, db):
        for day in range(1, 4):
            db.record_scan(1, "Biogesic", "Paracetamol", datetime(2026, 1, day))

        assert len(db.list_scans(limit=2)) == 2

    def test_delete_scan(self, db):
        scan_id = db.record_scan(1, "Biogesic", "Paracetamol")

        assert db.delete_scan(scan_id) == 1
        assert db.delete_scan(scan_id) == 0
        assert db.list_scans() == []

    def test_clear_scans(self, db):
        db.record_scan(1, "Biogesic", "Paracetamol")
        db.record_scan(2, "RiteMed", "Paracetamol")

        assert db.clear_scans() == 2
        assert db.list_scans() == []

    def test_record_scan_error_returns_none(self, db):
        db._get_connection().execute("DROP TABLE scan_history")

        assert db.record_scan(1, "Biogesic", "Paracetamol") is None


def test_close_then_reopen(tmp_path):
    path = str(tmp_path / "pills.sqlite")
    database = MedicineDatabase(path)
    database.initialize()
    database.record_scan(1, "Biogesic", "Paracetamol")
    database.close()

    reopened = MedicineDatabase(path)
    reopened.initialize()
    assert len(reopened.list_scans()) == 1
    reopened.close()
    assert database.conn is None
