#!/usr/bin/env python3
"""
Supabase Backup
====================================
Pushes the local store's users and courses to a Supabase project (one-way).
Password hashes never leave the machine.

Setup:
    1. Create a Supabase project at https://supabase.com/dashboard
    2. Run schema/supabase_schema.sql in the Supabase SQL Editor
    3. Get your project URL and service-role key from Project Settings -> API
    4. Run this script:

Usage:
    python sync_supabase.py \\
        --url https://your-project.supabase.co \\
        --key your-service-role-key

    # Or use environment variables:
    export SUPABASE_URL=https://your-project.supabase.co
    export SUPABASE_KEY=your-service-role-key
    python sync_supabase.py --store ./data/progress_store.json

    # Only one account, previewed first:
    python sync_supabase.py --email ada@example.com --dry-run
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from supabase import Client, create_client

from academic_metrics import Course, User
from progress_store import CourseRepository, JsonFileStore, KeyValueStore, UserRepository

__all__ = [
    "USERS_TABLE",
    "COURSES_TABLE",
    "load_records",
    "transform_users",
    "transform_courses",
    "upsert_batch",
    "sync_store",
    "clean_tables",
    "verify_data",
]

logger = logging.getLogger(__name__)

BATCH_SIZE = 100  # Supabase REST API limit per request

USERS_TABLE = "tracker_users"
COURSES_TABLE = "tracker_courses"
# Parents before children (tracker_courses.user_id references tracker_users.id)
TABLE_ORDER = [USERS_TABLE, COURSES_TABLE]
NIL_UUID = "00000000-0000-0000-0000-000000000000"


def load_records(store: KeyValueStore, email: str | None = None) -> tuple[list[User], list[Course]]:
    """Users and courses from the store, optionally narrowed to one account."""
    users = UserRepository(store).list()
    courses = CourseRepository(store).list()
    if email:
        wanted = email.strip().lower()
        users = [u for u in users if u.email.lower() == wanted]
        ids = {u.id for u in users}
        courses = [c for c in courses if c.user_id in ids]
    return users, courses


def transform_users(users: list[User]) -> list[dict]:
    return [u.to_supabase_row() for u in users]


def transform_courses(courses: list[Course]) -> list[dict]:
    return [c.to_supabase_row() for c in courses]


def upsert_batch(client: Client, table: str, records: list[dict], batch_size: int = BATCH_SIZE) -> int:
    """Upsert in batches; a failed batch is retried record by record."""
    total = len(records)
    inserted = 0

    for i in range(0, total, batch_size):
        batch = records[i : i + batch_size]
        try:
            client.table(table).upsert(batch).execute()
            inserted += len(batch)
            print(f"  {table}: {inserted}/{total} records", end="\r")
        except Exception as e:
            logger.warning("Batch %s[%d:%d] failed: %s", table, i, i + len(batch), e)
            print(f"\n  ERROR on {table} batch {i}-{i + len(batch)}: {e}")
            # Try one by one to find the problematic record
            for j, record in enumerate(batch):
                try:
                    client.table(table).upsert([record]).execute()
                    inserted += 1
                except Exception as e2:
                    logger.error("Skipped %s record %s: %s", table, record.get("id"), e2)
                    print(f"  SKIP {table}[{i + j}]: {e2}")

    print(f"  {table}: {inserted}/{total} records ✓")
    return inserted


def sync_store(client: Client, store: KeyValueStore, email: str | None = None) -> dict[str, int]:
    """Upsert every user, then every course. Returns rows written per table."""
    users, courses = load_records(store, email)
    rows = {
        USERS_TABLE: transform_users(users),
        COURSES_TABLE: transform_courses(courses),
    }

    results = {}
    for table in TABLE_ORDER:
        print(f"\n  Syncing {table} ({len(rows[table])} records)...")
        results[table] = upsert_batch(client, table, rows[table])
    logger.info("Synced %s", ", ".join(f"{t}={n}" for t, n in results.items()))
    return results


def clean_tables(client: Client):
    """Delete remote rows, children first, so a re-sync starts empty."""
    print("\n  Cleaning existing data...")
    for table in reversed(TABLE_ORDER):
        try:
            client.table(table).delete().neq("id", NIL_UUID).execute()
            print(f"    {table}: cleared")
        except Exception as e:
            logger.error("Could not clear %s: %s", table, e)
            print(f"    {table}: ERROR: {e}")


def verify_data(client: Client) -> dict[str, int | None]:
    """Row count per table; None where the count query failed."""
    print("\n  Verification:")
    counts: dict[str, int | None] = {}
    for table in TABLE_ORDER:
        try:
            result = client.table(table).select("id", count="exact").limit(1).execute()
            counts[table] = result.count
            print(f"    {table}: {result.count if result.count is not None else '?'} rows")
        except Exception as e:
            counts[table] = None
            logger.error("Could not count %s: %s", table, e)
            print(f"    {table}: ERROR: {e}")
    return counts


def main():
    parser = argparse.ArgumentParser(description="Back up the progress store to Supabase")
    parser.add_argument(
        "--store",
        default=os.environ.get("APT_STORE", "./data/progress_store.json"),
        help="Store file (default: $APT_STORE or ./data/progress_store.json)",
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("SUPABASE_URL", ""),
        help="Supabase project URL (or set SUPABASE_URL env var)",
    )
    parser.add_argument(
        "--key",
        default=os.environ.get("SUPABASE_KEY", os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")),
        help="Supabase API key, service_role recommended (or set SUPABASE_KEY env var)",
    )
    parser.add_argument("--email", help="Only sync this account")
    parser.add_argument("--verify-only", action="store_true", help="Only count remote rows")
    parser.add_argument("--clean", action="store_true", help="Clear remote tables before syncing")
    parser.add_argument("--dry-run", action="store_true", help="Preview record counts without connecting to Supabase")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    store = JsonFileStore(args.store)

    # Dry-run: report counts without connecting
    if args.dry_run:
        users, courses = load_records(store, args.email)
        print("=" * 60)
        print("  Dry Run: Preview")
        print("=" * 60)
        print(f"  {USERS_TABLE}: {len(users):,} records")
        print(f"  {COURSES_TABLE}: {len(courses):,} records")
        print("\n  No data was written.")
        sys.exit(0)

    if not args.url or not args.key:
        print("ERROR: Supabase URL and key are required.")
        print("  Pass --url/--key or set SUPABASE_URL and SUPABASE_KEY.")
        print("  Use --dry-run to preview what would be synced without them.")
        sys.exit(1)

    print("=" * 60)
    print("  Supabase Backup")
    print("=" * 60)
    print(f"  URL: {args.url}")
    print(f"  Key: {args.key[:12]}...{args.key[-4:]}")
    print(f"  Store: {args.store}")

    # Fail fast before connecting
    if not args.verify_only and not store.path.exists():
        print(f"\nERROR: Store file not found: {store.path}")
        print("Register and add courses first:")
        print("  progress-tracker register --name ... --email ...")
        sys.exit(1)

    client = create_client(args.url, args.key)

    if args.verify_only:
        verify_data(client)
        return

    if args.clean:
        clean_tables(client)

    results = sync_store(client, store, args.email)
    verify_data(client)

    print("\n" + "=" * 60)
    total = sum(results.values())
    print(f"  Done! {total:,} records synced across {len(results)} tables.")
    print("=" * 60)


if __name__ == "__main__":
    main()
