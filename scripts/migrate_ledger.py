#!/usr/bin/env python3
"""
Migration script for the canonical access ledger.

Rewrites legacy user documents (daily counters, accessedContentToday arrays)
into the single "ledger" object the quota engine reads.

Usage:
    python scripts/migrate_ledger.py [--dry-run] [--user-data-dir USER_DATA_DIR]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from membership_portal.user_management.migration import migrate_ledgers


def main():
    parser = argparse.ArgumentParser(
        description="Migrate legacy user documents to the canonical access ledger"
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Show what would be done without making changes"
    )
    parser.add_argument(
        "--user-data-dir",
        type=Path,
        default=Path(__file__).parent.parent / "user_data",
        help="Path to user data directory (default: ./user_data)"
    )

    args = parser.parse_args()

    print("🚀 Ledger Migration Tool")
    print("=" * 50)
    print(f"User data directory: {args.user_data_dir}")
    print(f"Dry run: {args.dry_run}")
    print()

    if not args.user_data_dir.exists():
        print(f"ℹ️  No user data directory at {args.user_data_dir}")
        print("   Nothing to migrate.")
        return

    result = migrate_ledgers(args.user_data_dir, args.dry_run)

    if args.dry_run:
        print("🔍 DRY RUN - No changes made")
    print()
    print("📊 Migration Summary:")
    print(f"   - Migrated documents: {result['migrated_entries']}")
    print(f"   - Skipped documents: {result['skipped_entries']}")
    print(f"   - Errors: {len(result['errors'])}")

    if result["errors"]:
        print("\n❌ Errors encountered:")
        for error in result["errors"]:
            print(f"   - {error}")
        sys.exit(1)

    print("\n✅ Migration complete!")


if __name__ == "__main__":
    main()
