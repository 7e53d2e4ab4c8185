#!/usr/bin/env python3
"""
Location Reference Seed Script
Loads provinces, cities and districts from a nested JSON file.

Usage:
    python -m scripts.seed_locations [path/to/locations.json]

Defaults to scripts/data/locations.json. The file is a list of
{id, name, cities: [{id, name, districts: [{id, name}]}]}.
"""
import json
import sys
from pathlib import Path

from mbg_watch.database import SessionLocal, init_db
from mbg_watch.services.review.locations import LocationDirectory

DEFAULT_PATH = Path(__file__).parent / "data" / "locations.json"


def main():
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_PATH
    if not path.exists():
        print(f"Error: {path} not found.")
        sys.exit(1)

    provinces = json.loads(path.read_text(encoding="utf-8"))

    init_db()
    db = SessionLocal()
    try:
        written = LocationDirectory(db).load(provinces)
        db.commit()
    finally:
        db.close()

    print(f"Loaded {written} location rows from {path}")


if __name__ == "__main__":
    main()
