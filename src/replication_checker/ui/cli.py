# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from replication_checker.adapters.sqlalchemy import SqlAlchemyLibrary, is_started, startup
from replication_checker.app import build_application
from replication_checker.config import configure_logging
from replication_checker.domain.model import Creator, ItemType, RecordField
from replication_checker.domain.references import parse_bibtex_entries
from replication_checker.ui.console import ConsoleUserInterface

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from replication_checker.app import Application
    from replication_checker.domain.checker import CheckReport

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check a bibliography against the FORRT replication database"
    )
    parser.add_argument(
        "--database",
        type=str,
        help="SQLAlchemy database URI (defaults to DATABASE_URI or the data directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    answers = parser.add_mutually_exclusive_group()
    answers.add_argument(
        "--yes",
        dest="answer",
        action="store_const",
        const=True,
        help="Accept every confirmation without prompting",
    )
    answers.add_argument(
        "--no",
        dest="answer",
        action="store_const",
        const=False,
        help="Decline every confirmation without prompting",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Check records for replications")
    check_sub = check.add_subparsers(dest="check_command", required=True)
    check_records = check_sub.add_parser("records", help="Check selected records")
    check_records.add_argument("record_ids", type=int, nargs="+", help="Record ids")
    check_collection = check_sub.add_parser(
        "collection", help="Check a collection and its sub-collections"
    )
    check_collection.add_argument("collection_id", type=int, help="Collection id")
    check_library = check_sub.add_parser("library", help="Check a whole library")
    check_library.add_argument(
        "--library-id",
        type=int,
        help="Library to check (defaults to the personal library)",
    )
    check_library.add_argument("--all", action="store_true", help="Check every library")

    watch = subparsers.add_parser(
        "watch", help="Run scheduled checks and check newly added records"
    )
    watch.add_argument(
        "--poll-interval",
        type=float,
        default=3600.0,
        help="Seconds between scheduled-check polls (default: %(default)s)",
    )

    records = subparsers.add_parser("records", help="Record management commands")
    records_sub = records.add_subparsers(dest="records_command", required=True)
    records_list = records_sub.add_parser("list", help="List records of a library")
    records_list.add_argument("--library-id", type=int, help="Library (defaults to personal)")
    records_add = records_sub.add_parser("add", help="Add a record")
    records_add.add_argument("--library-id", type=int, help="Library (defaults to personal)")
    records_add.add_argument(
        "--item-type",
        type=str,
        default=ItemType.JOURNAL_ARTICLE.value,
        choices=[item.value for item in ItemType if item.is_regular],
        help="Record type (default: %(default)s)",
    )
    records_add.add_argument("--title", type=str, required=True, help="Record title")
    records_add.add_argument("--doi", type=str, help="DOI of the work")
    records_add.add_argument("--url", type=str, help="URL of the work")
    records_add.add_argument(
        "--author",
        type=str,
        action="append",
        default=[],
        help="Author as 'Family, Given' (repeatable)",
    )
    records_import = records_sub.add_parser("import", help="Import records from a BibTeX file")
    records_import.add_argument("path", type=Path, help="BibTeX file")
    records_import.add_argument("--library-id", type=int, help="Library (defaults to personal)")

    bans = subparsers.add_parser("bans", help="Ban registry commands")
    bans_sub = bans.add_subparsers(dest="bans_command", required=True)
    bans_sub.add_parser("list", help="List banned studies")
    bans_add = bans_sub.add_parser("add", help="Trash and ban replication/reproduction records")
    bans_add.add_argument("record_ids", type=int, nargs="+", help="Record ids")
    bans_remove = bans_sub.add_parser("remove", help="Unban a study by DOI or URL")
    bans_remove.add_argument("identifier", type=str, help="DOI or URL")
    bans_sub.add_parser("clear", help="Remove every ban")

    libraries = subparsers.add_parser("libraries", help="Library management commands")
    libraries_sub = libraries.add_subparsers(dest="libraries_command", required=True)
    libraries_sub.add_parser("list", help="List libraries")
    libraries_add = libraries_sub.add_parser("add", help="Create a library")
    libraries_add.add_argument("name", type=str, help="Library name")
    libraries_add.add_argument(
        "--read-only", action="store_true", help="Mark the library as read-only"
    )
    libraries_add.add_argument(
        "--personal", action="store_true", help="Mark the library as the personal library"
    )

    return parser.parse_args(list(argv))


def _parse_author(value: str) -> Creator:
    family, _, given = value.partition(",")
    family = family.strip()
    if not family:
        raise ValueError(f"Invalid author: {value!r}")
    return Creator(first_name=given.strip() or None, last_name=family)


def _open_library(database_uri: str | None) -> SqlAlchemyLibrary:
    if not is_started():
        startup(database_uri=database_uri)
    return SqlAlchemyLibrary()


async def _resolve_library_id(library: SqlAlchemyLibrary, library_id: int | None) -> int:
    if library_id is not None:
        return (await library.library_info(library_id)).id
    return (await library.ensure_personal_library()).id


async def _run_check(app: Application, args: argparse.Namespace) -> list[CheckReport]:
    checker = app.checker
    if args.check_command == "records":
        return [await checker.check_records(args.record_ids)]
    if args.check_command == "collection":
        return [await checker.check_collection(args.collection_id)]
    if args.all:
        return await checker.check_all_libraries()
    return [await checker.check_library(args.library_id)]


async def _run_records(library: SqlAlchemyLibrary, args: argparse.Namespace) -> None:
    library_id = await _resolve_library_id(library, args.library_id)
    if args.records_command == "list":
        for record in await library.list_records(library_id):
            doi = record.field_value(RecordField.DOI) or "-"
            print(f"{record.id}\t{record.item_type}\t{doi}\t{record.title or ''}")
        return

    if args.records_command == "add":
        fields = {str(RecordField.TITLE): args.title}
        if args.doi:
            fields[str(RecordField.DOI)] = args.doi
        if args.url:
            fields[str(RecordField.URL)] = args.url
        creators = [_parse_author(author) for author in args.author]
        record_id = await library.create_record(library_id, args.item_type, fields, creators)
        print(record_id)
        return

    text = args.path.read_text(encoding="utf-8")
    references = parse_bibtex_entries(text)
    if not references:
        raise ValueError(f"No BibTeX entries found in {args.path}")
    async with library.transaction():
        for reference in references:
            await library.create_record(
                library_id,
                reference.item_type or ItemType.DOCUMENT,
                reference.fields,
                reference.creators,
            )
    log.info("Imported %s record(s) into library %s", len(references), library_id)


async def _run_bans(app: Application, args: argparse.Namespace) -> None:
    await app.bans.ensure_loaded()
    if args.bans_command == "list":
        for entry in app.bans.entries:
            identifier = entry.doi or entry.url or "-"
            print(f"{entry.kind.value}\t{identifier}\t{entry.title or ''}\t{entry.reason.value}")
    elif args.bans_command == "add":
        banned = await app.checker.ban(args.record_ids)
        print(f"Banned {banned} record(s)")
    elif args.bans_command == "remove":
        removed = await app.checker.unban(args.identifier)
        print(f"Removed {removed} ban(s)")
    else:
        cleared = await app.checker.clear_bans()
        print(f"Cleared {cleared} ban(s)")


async def _run_libraries(library: SqlAlchemyLibrary, args: argparse.Namespace) -> None:
    if args.libraries_command == "add":
        info = await library.add_library(
            args.name, editable=not args.read_only, personal=args.personal
        )
        print(info.id)
        return
    await library.ensure_personal_library()
    for info in await library.list_libraries():
        flags = ["personal"] if info.personal else []
        if not info.editable:
            flags.append("read-only")
        print(f"{info.id}\t{info.name}\t{','.join(flags)}")


async def _dispatch(args: argparse.Namespace) -> None:
    library = _open_library(args.database)
    if args.command == "libraries":
        await _run_libraries(library, args)
        return
    if args.command == "records":
        await _run_records(library, args)
        return

    await library.ensure_personal_library()
    app = build_application(ui=ConsoleUserInterface(answer=args.answer), library=library)
    if args.command == "check":
        await app.start()
        try:
            await _run_check(app, args)
        finally:
            await app.stop()
    elif args.command == "watch":
        await app.watch(poll_interval=args.poll_interval)
    elif args.command == "bans":
        await _run_bans(app, args)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        asyncio.run(_dispatch(parsed_args))
    except ValueError:
        log.exception("Invalid input")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
