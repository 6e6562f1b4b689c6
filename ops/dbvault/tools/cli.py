"""
Operator CLI for dbvault.

Usage:
    dbvault backup
    dbvault restore [--key <key>] [--dry-run]
    dbvault cleanup
    dbvault verify
    dbvault list
    dbvault orphans
    dbvault status

Invariants:
    - Restore is explicit and supervised; its errors are reported, never
      turned into partial success
    - Exit code is 0 on success and 1 on failure
    - All operations are logged
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from ..config import VaultConfig
from ..errors import BackupError
from ..scheduler import BackupScheduler
from ..service import BackupService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbvault",
        description="Encrypted SQLite backups to S3 with tiered retention",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("backup", help="Capture and upload a backup now")

    restore = sub.add_parser("restore", help="Restore the live database from a backup")
    restore.add_argument("--key", help="Artifact key to restore (default: latest)")
    restore.add_argument(
        "--dry-run", action="store_true", help="Download and validate only, don't write"
    )

    sub.add_parser("cleanup", help="Apply the retention policy")
    sub.add_parser("verify", help="Check that the latest backup decodes")
    sub.add_parser("list", help="List stored backups, newest first")
    sub.add_parser("orphans", help="Report artifacts or metadata missing their pair")
    sub.add_parser("status", help="Show backup status")
    return parser


async def run_command(args: argparse.Namespace, service: BackupService) -> int:
    """Execute one CLI command and return the process exit code."""
    if args.command == "backup":
        result = await service.upload_backup()
        print(f"Backup uploaded: {result.key}")
        print(f"  Size: {result.metadata.size} bytes ({result.artifact_size_bytes} encrypted)")
        print(f"  Checksum: {result.metadata.checksum}")
        return 0

    if args.command == "restore":
        result = await service.restore_from_backup(args.key, dry_run=args.dry_run)
        if result.dry_run:
            print(f"Dry run: {result.key} is valid ({result.size_bytes} bytes)")
        else:
            print("Restore completed successfully")
            print(f"  Backup: {result.key}")
            print(f"  Safety copy: {result.safety_copy_path or 'none'}")
        print(f"  Checksum verified: {'yes' if result.checksum_verified else 'no metadata'}")
        print(f"  Duration: {result.duration_ms}ms")
        return 0

    if args.command == "cleanup":
        report = await service.cleanup_old_backups()
        print(f"Examined {report.examined}, kept {report.kept}, deleted {len(report.deleted)}")
        for key in report.failed:
            print(f"  Failed: {key}")
        return 1 if report.failed else 0

    if args.command == "verify":
        ok = await service.verify_latest_backup()
        print("Backup verification passed" if ok else "Backup verification failed")
        return 0 if ok else 1

    if args.command == "list":
        for entry in await service.list_backups():
            meta = "" if entry.has_metadata else "  (no metadata)"
            print(f"{entry.uploaded_at.isoformat()}  {entry.size_bytes:>12}  {entry.key}{meta}")
        return 0

    if args.command == "orphans":
        report = await service.find_orphans()
        for key in report.metadata_without_artifact:
            print(f"metadata without artifact: {key}")
        for key in report.artifacts_without_metadata:
            print(f"artifact without metadata: {key}")
        if report.is_clean:
            print("No unpaired objects")
        return 0

    if args.command == "status":
        status = await BackupScheduler(service, service.config.scheduler).get_status()
        print(f"Scheduled backups: {'enabled' if status.enabled else 'disabled'}")
        print(f"  Backups stored: {status.backup_count}")
        print(f"  Latest: {status.last_backup_key or 'none'} {status.last_backup_at or ''}")
        print(f"  Verified: {'yes' if status.verified else 'no'}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def _run(args: argparse.Namespace, config: VaultConfig) -> int:
    service = BackupService(config)
    try:
        return await run_command(args, service)
    finally:
        await service.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = VaultConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        code = asyncio.run(_run(args, config))
    except BackupError as e:
        print(f"{args.command.capitalize()} failed: {e.message}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"{args.command.capitalize()} failed: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
