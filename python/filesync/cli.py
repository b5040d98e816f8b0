"""Command line entry point for attaching, indexing and searching folders."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import SyncConfig, set_config
from .errors import DuplicateFolderError
from .sync import FileSync


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="filesync", description="Index external folders for path completion")
    parser.add_argument("--db", help="Path to the index database")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Attach a folder to a project")
    add.add_argument("project", help="Project path")
    add.add_argument("folder", help="Folder to index")
    add.add_argument("--index", action="store_true", help="Index the folder right away")

    remove = sub.add_parser("remove", help="Detach a folder")
    remove.add_argument("folder_id")

    listing = sub.add_parser("list", help="List attached folders")
    listing.add_argument("--project", help="Only this project's folders")

    index = sub.add_parser("index", help="Index one folder, or run a background pass")
    index.add_argument("folder_id", nargs="?")

    search = sub.add_parser("search", help="Search indexed file names")
    search.add_argument("query", nargs="?", default="")
    search.add_argument("--project", help="Only this project's folders")

    sub.add_parser("watch", help="Index what's needed, then watch for changes")

    return parser


def _print_folder(folder) -> None:
    indexed = folder.last_indexed_at.strftime("%Y-%m-%d %H:%M") if folder.last_indexed_at else "never"
    line = f"{folder.id}  {folder.status.value:<8}  {folder.file_count:>7} files  {indexed}  {folder.folder_path}"
    if folder.error_message:
        line += f"  ({folder.error_message})"
    print(line)


async def _run(args: argparse.Namespace, sync: FileSync) -> int:
    await sync.initialize()

    if args.command == "add":
        folder_path = str(Path(args.folder).expanduser().resolve())
        try:
            folder = sync.add_folder(args.project, folder_path)
        except DuplicateFolderError as e:
            print(e, file=sys.stderr)
            return 1
        if args.index:
            await sync.start_indexing(folder.id)
            folder = sync.state.folder(folder.id)
        _print_folder(folder)

    elif args.command == "remove":
        await sync.remove_folder(args.folder_id)

    elif args.command == "list":
        folders = sync.folders_for_project(args.project) if args.project else sync.folders
        for folder in folders:
            _print_folder(folder)
        print(sync.sync_status())

    elif args.command == "index":
        if args.folder_id:
            await sync.start_indexing(args.folder_id)
        else:
            await sync.start_background_indexing()
        print(sync.sync_status())

    elif args.command == "search":
        for entry in sync.search(args.query, args.project):
            print(f"{entry.file_name:<40}  {entry.full_path}")

    elif args.command == "watch":
        await sync.start_background_indexing()
        print(f"{sync.sync_status()}\nWatching for changes (Ctrl+C to stop)...")
        await asyncio.Event().wait()

    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s"
    )

    config = SyncConfig.from_env()
    if args.db:
        config.db_path = Path(args.db)
        config.__post_init__()
    set_config(config)

    async def _main() -> int:
        sync = FileSync(config)
        try:
            return await _run(args, sync)
        finally:
            await sync.close()

    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        print("\nStopped.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
