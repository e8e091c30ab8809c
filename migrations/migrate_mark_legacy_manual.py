#!/usr/bin/env python3
"""Migration script to make the distribution mode of legacy cases explicit.

Cases created before the distribution_mode column existed were split by
their fixed amounts whenever those were set. This migration writes that
rule down so the allocation no longer has to infer it:

- no frozen percentages, a fixed amount > 0 and distribution_mode NULL or
  'auto' -> 'manual'
- distribution_mode IS NULL otherwise -> 'auto'

Cases storing both percentages and fixed amounts keep resolving to auto and
still show up for review in reports.

Auto cases left without frozen percentages keep following the configured
default split.

Usage:
    python migrations/migrate_mark_legacy_manual.py [--db-path PATH]
"""

import sys
from pathlib import Path

# Add src to path so we can import clinicsplit modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import and_, inspect, or_
from clinicsplit.database.factories import create_sqlite_database
from clinicsplit.database.models import Case


def migrate_database(database_path: str | None = None) -> int:
    """Mark legacy fixed-amount cases as manual.

    Args:
        database_path: Path to database file. If None, uses default location.

    Returns:
        Number of cases whose mode was written

    Raises:
        Exception: If migration fails
    """
    db = create_sqlite_database(database_path=database_path)
    db.connect()

    try:
        session = db.session_factory()
        try:
            engine = session.bind
            if engine is None:
                raise Exception("Could not get database engine from session")

            if "cases" not in inspect(engine).get_table_names():
                raise Exception("Table 'cases' does not exist. Please initialize the database schema first.")

            has_fixed = or_(Case.fixed_amount_a > 0, Case.fixed_amount_b > 0)
            no_percentages = and_(
                Case.frozen_percent_a.is_(None), Case.frozen_percent_b.is_(None)
            )

            print("Starting migration: marking legacy cases...")

            manual_count = (
                session.query(Case)
                .filter(
                    has_fixed,
                    no_percentages,
                    or_(Case.distribution_mode.is_(None), Case.distribution_mode == "auto"),
                )
                .update({"distribution_mode": "manual"}, synchronize_session=False)
            )
            print(f"  Set {manual_count} case(s) with fixed amounts to manual")

            auto_count = (
                session.query(Case)
                .filter(Case.distribution_mode.is_(None))
                .update({"distribution_mode": "auto"}, synchronize_session=False)
            )
            print(f"  Set {auto_count} remaining legacy case(s) to auto")

            session.commit()
        finally:
            session.close()

        if manual_count == 0 and auto_count == 0:
            print("Migration already applied: no legacy cases left")
        else:
            print("Migration completed successfully!")
        return manual_count + auto_count

    except Exception as e:
        print(f"Migration failed: {e}")
        raise
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Make the distribution mode of legacy cases explicit"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides CLINICSPLIT_DB_PATH environment variable)",
    )
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
