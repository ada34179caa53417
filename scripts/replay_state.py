#!/usr/bin/env python3
"""
Inspect and maintain the Orbit event store.

Usage:
    python scripts/replay_state.py replay            # load state, print collection sizes
    python scripts/replay_state.py verify            # snapshot path == full replay?
    python scripts/replay_state.py snapshot          # write a fresh snapshot
    python scripts/replay_state.py export FILE       # write a backup file
    python scripts/replay_state.py import FILE [--replace]
    python scripts/replay_state.py migrate [--dry-run]  # interactions/audits -> calendar events

Requires DATABASE_URL (the Postgres event store created by alembic).
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, ".")

from orbit import config, db
from orbit.kernel.backup import create_backup, import_backup, parse_backup, serialize_backup
from orbit.kernel.migrations import plan_calendar_event_migration, run_calendar_event_migration
from orbit.kernel.persistence import load_persisted_state, save_snapshot, verify_replay_equivalence
from orbit.kernel.postgres_storage import PostgresStore
from orbit.kernel.session import CrmStore, SessionContext
from orbit.kernel.types import ENTITY_COLLECTIONS


async def cmd_replay(store: PostgresStore, args: argparse.Namespace) -> int:
    state = await load_persisted_state(store)
    summary = {name: len(state.doc[name]) for name in ENTITY_COLLECTIONS}
    summary["accountContacts"] = len(state.doc["relations"]["accountContacts"])
    summary["entityLinks"] = len(state.doc["relations"]["entityLinks"])
    print(json.dumps({
        "events": len(state.events),
        "snapshotTimestamp": state.snapshot_timestamp,
        "snapshotEventId": state.snapshot_event_id,
        "replayed": state.replayed,
        "collections": summary,
    }, indent=2))
    return 0


async def cmd_verify(store: PostgresStore, args: argparse.Namespace) -> int:
    ok = await verify_replay_equivalence(store)
    print("OK" if ok else "MISMATCH: snapshot diverges from full replay")
    return 0 if ok else 1


async def cmd_snapshot(store: PostgresStore, args: argparse.Namespace) -> int:
    state = await load_persisted_state(store)
    if not state.events:
        print("No events; nothing to snapshot.")
        return 0
    record = await save_snapshot(store, state.doc, state.events[-1])
    print(f"Snapshot {record.id} through {record.event_id} ({record.timestamp})")
    return 0


async def cmd_export(store: PostgresStore, args: argparse.Namespace) -> int:
    backup = await create_backup(store, config.settings.DEVICE_ID, config.settings.APP_VERSION)
    Path(args.file).write_text(serialize_backup(backup))
    print(f"Exported {len(backup.events)} events to {args.file}")
    return 0


async def cmd_import(store: PostgresStore, args: argparse.Namespace) -> int:
    raw = Path(args.file).read_text()
    backup = parse_backup(raw, max_bytes=config.settings.MAX_BACKUP_BYTES)
    result = await import_backup(store, backup, "replace" if args.replace else "merge")
    print(result.model_dump_json(indent=2))
    return 0


async def cmd_migrate(store: PostgresStore, args: argparse.Namespace) -> int:
    crm = CrmStore.from_settings(store, SessionContext(config.settings.DEVICE_ID, config.settings.APP_VERSION))
    await crm.load()
    if args.dry_run:
        report = plan_calendar_event_migration(crm.doc, crm.session.device_id)
    else:
        report = await run_calendar_event_migration(crm)
        await crm.drain()
    print(json.dumps({
        "migration": report.migration,
        "dryRun": args.dry_run,
        "events": len(report.events),
        "interactions": report.interaction_ids,
        "audits": report.audit_ids,
        "links": report.link_ids,
        "warnings": report.warnings,
    }, indent=2))
    return 0


COMMANDS = {
    "replay": cmd_replay,
    "verify": cmd_verify,
    "snapshot": cmd_snapshot,
    "export": cmd_export,
    "import": cmd_import,
    "migrate": cmd_migrate,
}


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Orbit event store maintenance")
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("replay", help="Load state and print a summary")
    sub.add_parser("verify", help="Check snapshot + replay equals full replay")
    sub.add_parser("snapshot", help="Write a snapshot of the current state")
    export = sub.add_parser("export", help="Write a backup file")
    export.add_argument("file")
    imp = sub.add_parser("import", help="Import a backup file")
    imp.add_argument("file")
    imp.add_argument("--replace", action="store_true", help="Replace local storage instead of merging")
    migrate = sub.add_parser("migrate", help="Move interactions and audits onto calendar events")
    migrate.add_argument("--dry-run", action="store_true", help="Only print the planned events")
    return p.parse_args(argv)


async def main(argv: list[str]) -> int:
    args = parse_args(argv)
    config.configure_logging()
    pool = await db.init_pool()
    try:
        return await COMMANDS[args.command](PostgresStore(pool), args)
    finally:
        await db.close_pool()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
