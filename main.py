import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Settings are read from the environment when the package is imported.
load_dotenv()

from boxall import BoxAllError, Inventory  # noqa: E402
from boxall.bulk_import import count_statuses  # noqa: E402
from boxall.sync_client import SyncClient, SyncError  # noqa: E402

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="boxall", description="Component storage box inventory")
    parser.add_argument("--data-dir", help="override BOXALL_DATA_DIR")
    parser.add_argument("--store", choices=["json", "sql"], help="override BOXALL_STORE")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-box", help="register a new box")
    create.add_argument("name")
    create.add_argument("--type", dest="box_type", default=None)

    sub.add_parser("list-boxes", help="list registered boxes")

    imp = sub.add_parser("import", help="import items from a CSV file")
    imp.add_argument("path")
    imp.add_argument("--overwrite", action="store_true", help="overwrite occupied compartments")
    imp.add_argument("--dry-run", action="store_true", help="only show the preview")

    export = sub.add_parser("export-status", help="write the status export")
    export.add_argument("--publish", action="store_true", help="upload to the sync share")

    backup = sub.add_parser("backup", help="write per-box backup files")
    backup.add_argument("box_ids", nargs="*", help="boxes to back up (default: all)")

    restore = sub.add_parser("restore", help="restore boxes from backup files")
    restore.add_argument("paths", nargs="+")
    restore.add_argument("--overwrite", action="store_true", help="replace boxes that still exist")
    return parser


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)
    inventory = Inventory.open(data_dir=args.data_dir, backend=args.store)

    if args.command == "create-box":
        kwargs = {"box_type": args.box_type} if args.box_type else {}
        box = inventory.create_box(args.name, **kwargs)
        if box is None:
            print("Failed to save the registry", file=sys.stderr)
            return 1
        print(f"{box.id}\t{box.name}\t{box.type}")
    elif args.command == "list-boxes":
        for box in inventory.get_all_boxes():
            print(
                f"{box.id}\t{box.name}\t{box.type}\t"
                f"{box.occupied_compartments}/{box.total_compartments}\t"
                f"low stock: {box.low_stock_count}"
            )
    elif args.command == "import":
        rows = inventory.parse_import(args.path)
        counts = count_statuses(rows)
        print(
            f"Ready: {counts['ready']}  Conflicts: {counts['conflict']}  "
            f"Skip: {counts['skip']}  Errors: {counts['error']}"
        )
        for row in rows:
            if row.status.value.startswith("invalid"):
                print(f"  row {row.row_number}: {row.status.value} ({row.box_name} {row.position})")
        if args.dry_run:
            return 0
        summary = inventory.run_import(rows, args.overwrite, os.path.basename(args.path))
        print(summary.describe())
        return 1 if summary.failed else 0
    elif args.command == "export-status":
        client = SyncClient() if args.publish else None
        path = inventory.export_status(client)
        if path is None:
            return 1
        print(path)
    elif args.command == "backup":
        box_ids = args.box_ids or [box.id for box in inventory.get_all_boxes()]
        for path in inventory.backup_boxes(box_ids):
            print(path)
    elif args.command == "restore":
        decisions = {}
        if args.overwrite:
            decisions = {box.id: True for box in inventory.get_all_boxes()}
        result = inventory.restore_backups(args.paths, decisions)
        print(
            f"Restored {result.imported} boxes "
            f"({result.created} created, {result.overwritten} overwritten, {result.skipped} skipped)"
        )
        for error in result.errors:
            print(error, file=sys.stderr)
        return 1 if result.errors else 0
    return 0


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    try:
        sys.exit(run())
    except (BoxAllError, SyncError, ValueError) as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
