#!/usr/bin/env python3
"""
Export listings from the FairList sqlite database to CSV.

Exports one user's listings (--user-id) or every listing in the database.
Safe to run while the API is up: it only reads.
"""

import argparse
import sys
from pathlib import Path

from services.export import listings_to_frame
from storage.listings_db import DB_PATH, query_listings

PAGE_SIZE = 500

def load_all(db_path: str, user_id=None) -> list:
    rows = []
    page = 1
    while True:
        batch, total = query_listings(db_path, {
            "user_id": user_id,
            "sort_by": "created_at",
            "sort_order": "asc",
            "page": page,
            "limit": PAGE_SIZE,
        })
        rows.extend(batch)
        if not batch or len(rows) >= total:
            return rows
        page += 1

def main(argv=None):
    parser = argparse.ArgumentParser(description="Export FairList listings to CSV")
    parser.add_argument("--db", default=DB_PATH, help="Path to the sqlite database")
    parser.add_argument("--user-id", type=int, default=None, help="Only export this user's listings")
    parser.add_argument("--out", default=None, help="Output CSV path (default: data/listings_export.csv)")
    args = parser.parse_args(argv)

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Error: database not found at {db_path}")
        sys.exit(1)

    out_path = Path(args.out) if args.out else db_path.parent / "listings_export.csv"

    print(f"Loading listings from: {db_path}")
    rows = load_all(str(db_path), args.user_id)
    print(f"Loaded {len(rows)} listing(s).")

    df = listings_to_frame(rows)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)

    print(f"Saved {len(df)} row(s) to: {out_path}")
    return out_path

if __name__ == "__main__":
    main()
