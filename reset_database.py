#!/usr/bin/env python3
"""
Database Reset Script
Drops and recreates the mixer tables. All commitments, roots, nullifiers and
the custody balance are lost.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from zkmixer.config import get_settings
from zkmixer.storage.database import DatabaseManager

DEFAULT_DATABASE_URL = "sqlite:///./zk_mixer.db"


def reset_database(database_url: str):
    """Drop and recreate all mixer tables."""
    print(f"Resetting database {database_url} ...")

    db = DatabaseManager(database_url)

    print("  Dropping all tables...")
    db.drop_tables()

    print("  Creating tables...")
    db.create_tables()

    snapshot = db.load_snapshot()
    print("\nDatabase reset complete.")
    print(f"  commitments: {len(snapshot.commitments)}")
    print(f"  nullifiers:  {len(snapshot.nullifiers)}")
    print(f"  custody:     {snapshot.custody_balance}")


if __name__ == "__main__":
    url = sys.argv[1] if len(sys.argv) > 1 else (get_settings().database_url or DEFAULT_DATABASE_URL)
    try:
        reset_database(url)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nFatal error: {e}")
        sys.exit(1)
