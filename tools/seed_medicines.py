#!/usr/bin/env python3
"""
Load medicine reference records into the database from a YAML file.

The YAML file holds a list of records with the Medicine fields, e.g.:

    - id: 1
      pill_label: biogesic-para
      brand_name: Biogesic
      generic_name: Paracetamol
      prescription_required: false

Usage:
    python tools/seed_medicines.py --file medicines.yaml
    python tools/seed_medicines.py --file medicines.yaml --db data/pillscan.sqlite
"""

import argparse
import os
import sys

# Add project directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

import yaml

from main import load_config
from models.medicine import Medicine
from storage.database import MedicineDatabase


def main():
    parser = argparse.ArgumentParser(description="Seed the medicine reference table")
    parser.add_argument("--file", required=True, help="YAML file with medicine records")
    parser.add_argument("--config", default="config/config.yaml", help="Path to configuration file")
    parser.add_argument("--db", default=None, help="Database path (overrides config)")
    args = parser.parse_args()

    with open(args.file, "r") as f:
        records = yaml.safe_load(f) or []
    if not isinstance(records, list):
        print("Expected a list of medicine records")
        return 1

    db_path = args.db or load_config(args.config).get("storage", {}).get(
        "local_database_path", "data/pillscan.sqlite"
    )
    db = MedicineDatabase(db_path)
    db.initialize()
    try:
        for record in records:
            medicine = Medicine.from_row(record)
            db.upsert_medicine(medicine)
            print(f"  {medicine.id}: {medicine.brand_name} ({medicine.generic_name})")
    finally:
        db.close()
    print(f"Seeded {len(records)} medicines into {db_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
