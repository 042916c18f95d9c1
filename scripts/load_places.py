#!/usr/bin/env python3
"""
Load places from a CSV file into the local SQLite DB.

CSV must have columns: name, lat, lng (id optional; latitude/longitude accepted).
(Header row expected.) Rows with blank coordinates are loaded as not geocoded.

  python scripts/load_places.py --csv path/to/places.csv
"""
import argparse
import csv
import sys
from pathlib import Path

# Add project root to path
root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(root))

from geonear.data.places_repo import PlacesRepo

LAT_NAMES = ("lat", "latitude")
LNG_NAMES = ("lng", "lon", "longitude")


def _pick(fieldnames: list[str], names: tuple[str, ...]) -> str | None:
    return next((n for n in names if n in fieldnames), None)


def _coordinate(raw: str | None) -> float | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    return float(raw)


def main() -> int:
    parser = argparse.ArgumentParser(description="Load places CSV into SQLite")
    parser.add_argument("--csv", required=True, type=Path, help="Path to CSV (id, name, lat, lng)")
    parser.add_argument(
        "--db",
        default=root / "data" / "places.db",
        type=Path,
        help="Path to SQLite DB file",
    )
    args = parser.parse_args()

    if not args.csv.exists():
        print(f"Error: CSV not found: {args.csv}", file=sys.stderr)
        return 1

    repo = PlacesRepo(args.db)
    count = skipped = 0
    with open(args.csv, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            print("Error: empty CSV", file=sys.stderr)
            return 1
        # Normalize headers (strip BOM / spaces)
        fieldnames = [h.strip().lower().lstrip("\ufeff") for h in reader.fieldnames]
        lat_col, lng_col = _pick(fieldnames, LAT_NAMES), _pick(fieldnames, LNG_NAMES)
        if "name" not in fieldnames or lat_col is None or lng_col is None:
            print(f"Error: CSV must have name and lat/lng columns. Got: {fieldnames}", file=sys.stderr)
            return 1
        for row in reader:
            row = {k.strip().lower().lstrip("\ufeff"): v for k, v in row.items() if k is not None}
            name = (row.get("name") or "").strip()
            try:
                lat = _coordinate(row.get(lat_col))
                lng = _coordinate(row.get(lng_col))
                place_id = int(row["id"]) if (row.get("id") or "").strip() else None
            except ValueError:
                skipped += 1
                continue
            if not name:
                skipped += 1
                continue
            repo.add_place(name, lat, lng, place_id=place_id)
            count += 1

    geocoded, missing = repo.count_geocoded()
    print(f"Loaded {count} places into {args.db} (skipped {skipped}; {geocoded} geocoded, {missing} without coordinates)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
