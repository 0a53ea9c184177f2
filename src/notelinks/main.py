#!/usr/bin/env python
"""Command line entry point for the notelinks engine."""
import argparse
import atexit
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import anyio
from pydantic import ValidationError

from notelinks import __version__
from notelinks.config import config
from notelinks.exceptions import NoteLinksError, NoteNotFoundError, NoteValidationError
from notelinks.models.schema import Note
from notelinks.observability import configure_logging, metrics
from notelinks.services.graph_builder import connected_node_ids, filter_nodes
from notelinks.services.link_parser import extract_outgoing_links, parse_links
from notelinks.services.link_service import LinkService
from notelinks.storage.sql_store import SqlNoteStore

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="notelinks", description="Wiki-link knowledge graph over a note collection"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("NOTELINKS_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files",
        type=str,
        default=os.environ.get("NOTELINKS_LOG_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTELINKS_LOG_LEVEL", "WARNING")
    )

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Create a note; outgoing links are parsed from its content")
    add.add_argument("title")
    add.add_argument("--content", default="", help="Note content")
    add.add_argument("--file", help="Read note content from a file ('-' for stdin)")
    add.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")

    parse = commands.add_parser("parse", help="List the wiki-links in a text")
    parse.add_argument("file", nargs="?", default="-", help="File to scan ('-' for stdin)")
    parse.add_argument("--resolve", action="store_true", help="Mark links to existing notes")

    backlinks = commands.add_parser("backlinks", help="Notes linking to a title")
    backlinks.add_argument("title")

    graph = commands.add_parser("graph", help="Print the note graph payload")
    graph.add_argument("--focus", metavar="NOTE_ID", help="Only show the neighborhood of this note")
    graph.add_argument(
        "--degrees", type=int, default=2, help="Hops around --focus to include (default: 2)"
    )
    graph.add_argument("--search", help="Only show notes whose title or tags match")

    suggest = commands.add_parser("suggest", help="Autocomplete note titles")
    suggest.add_argument("partial")

    exists = commands.add_parser("exists", help="Check which titles exist")
    exists.add_argument("titles", nargs="+")

    rename = commands.add_parser("rename", help="Rename a note and update every link to it")
    rename.add_argument("old_title")
    rename.add_argument("new_title")
    rename.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Keep updating the remaining notes after one cannot be updated",
    )

    return parser.parse_args(argv)


def update_config(args: argparse.Namespace) -> None:
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)
    config.log_level = args.log_level


def _read_text(path: Optional[str]) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _note_summary(note: Note) -> dict:
    return {"id": note.id, "title": note.title, "outgoing_links": note.outgoing_links}


async def run_command(args: argparse.Namespace, service: LinkService) -> Any:
    """Execute one subcommand and return its JSON-serializable result."""
    if args.command == "add":
        content = _read_text(args.file) if args.file else args.content
        note = Note(
            title=args.title,
            content=content,
            outgoing_links=extract_outgoing_links(content),
            tags=args.tag,
        )
        return {"id": await service.store.create_note(note)}

    if args.command == "parse":
        occurrences = parse_links(_read_text(args.file))
        if args.resolve:
            await service.resolve_links(occurrences)
        return [occurrence.model_dump() for occurrence in occurrences]

    if args.command == "backlinks":
        return [_note_summary(note) for note in await service.get_backlinks(args.title)]

    if args.command == "graph":
        data = await service.build_note_graph()
        if args.focus:
            data = data.subgraph(connected_node_ids(data, args.focus, args.degrees))
        if args.search:
            data = data.subgraph(node.id for node in filter_nodes(data, args.search))
        return data.to_payload()

    if args.command == "suggest":
        return await service.get_note_title_suggestions(args.partial)

    if args.command == "exists":
        return await service.check_notes_exist(args.titles)

    if args.command == "rename":
        note = await service.get_note_by_title(args.old_title)
        if note is None:
            raise NoteNotFoundError(args.old_title, f"No note titled {args.old_title!r}")
        # model_copy would skip the title validator
        renamed = Note.model_validate({**note.model_dump(), "title": args.new_title.strip()})
        await service.store.update_note(note.id, renamed)
        result = await service.update_links_on_rename(
            args.old_title,
            args.new_title,
            stop_on_failure=not args.continue_on_failure,
        )
        return result.to_dict()

    raise ValueError(f"Unknown command: {args.command}")


def _save_metrics_on_exit():
    """Save metrics to disk on shutdown."""
    try:
        if metrics.save_metrics():
            logger.debug("Metrics saved to disk on shutdown")
    except Exception as e:
        logger.warning(f"Failed to save metrics on shutdown: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run a notelinks command and print its result as JSON."""
    args = parse_args(argv)
    update_config(args)

    try:
        configure_logging(log_dir=config.log_dir, level=config.get_log_level(), console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=config.get_log_level())
        logger.warning(f"Failed to configure file logging: {e}")

    atexit.register(_save_metrics_on_exit)

    store = SqlNoteStore(db_url=config.get_db_url())
    service = LinkService(store)
    try:
        result = anyio.run(run_command, args, service)
    except NoteLinksError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), default=str), file=sys.stderr)
        return 1
    except ValidationError as e:
        error = NoteValidationError(f"Invalid note: {e.errors()[0]['msg']}")
        print(json.dumps(error.to_dict(), default=str), file=sys.stderr)
        return 1
    finally:
        store.close()

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
