"""Command-line interface for FlowRead.

WHY: Users want to manage their reading library and read documents from
the terminal, without starting the web server. The CLI wires the same
Library service the API uses to a handful of subcommands, plus a
terminal reader that flashes one colour-coded word at a time.

HOW: argparse subcommands (tokenize, upload, library, stats, delete,
read, serve). Store-backed commands open the configured store (database
with JSON-file fallback) and close it when done. ``read`` runs an
asyncio loop: a PlaybackClock ticks the session machine on the loop's
timer and each tick redraws the current word in place.

RULES:
- Status messages go to stderr; command results go to stdout
- Ctrl-C while reading saves progress and exits with code 130
- Library errors are printed as one line and exit with code 1
- Python 3.9+ compatible (no match/case, no X | Y unions)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from flowread import __version__, config
from flowread.core.extraction import extract_text, file_type_for
from flowread.core.tokenizer import tokenize
from flowread.errors import FlowReadError
from flowread.library import Library
from flowread.playback import AsyncioScheduler, PlaybackClock, ReadingSessionMachine, SessionState
from flowread.render import render_word
from flowread.storage import open_store


def _status(msg: str) -> None:
    """Print a status message to stderr.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return "{}h {:02d}m".format(hours, minutes)
    return "{}m {:02d}s".format(minutes, secs)


def _open_library(args: argparse.Namespace) -> Library:
    store = open_store(database_url=args.database_url, data_dir=args.data_dir)
    return Library(store, lang=args.lang)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_tokenize(args: argparse.Namespace) -> int:
    """Print a file's words split into syllables, one word per line."""
    path = Path(args.file)
    words = tokenize(extract_text(path.read_bytes(), file_type_for(path.name)), args.lang)
    if args.json:
        print(json.dumps([w.to_dict() for w in words], ensure_ascii=False, indent=2))
        return 0
    for word in words:
        print(render_word(word, args.preset, color=args.color, syllable_gap="·"))
    _status("{} words".format(len(words)))
    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    path = Path(args.file)
    library = _open_library(args)
    try:
        document = library.create_document(path.read_bytes(), path.name)
    finally:
        library.store.close()
    _status("Stored {} ({} words)".format(document.title, document.word_count))
    print(document.id)
    return 0


def cmd_library(args: argparse.Namespace) -> int:
    """List documents with their reading progress."""
    library = _open_library(args)
    try:
        documents = library.list_documents()
        if not documents:
            _status("Library is empty. Add a document with 'flowread upload FILE'.")
            return 0
        for document in documents:
            session = library.get_latest_session(document.id)
            if session is None:
                progress = "not started"
            elif session.completed:
                progress = "completed"
            else:
                percent = session.current_word_index / max(session.total_words, 1) * 100
                progress = "{:.0f}% at {} wpm".format(percent, session.speed_wpm)
            print("{}  {:<40}  {:>7} words  {}".format(
                document.id, document.title[:40], document.word_count, progress,
            ))
    finally:
        library.store.close()
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    library = _open_library(args)
    try:
        stats = library.get_stats()
    finally:
        library.store.close()
    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
        return 0
    print("Documents:       {}".format(stats.total_documents))
    print("Words read:      {}".format(stats.total_words_read))
    print("Time spent:      {}".format(_format_duration(stats.total_time_spent)))
    print("Average speed:   {} wpm".format(stats.average_speed))
    print("Completed:       {}".format(stats.documents_completed))
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    library = _open_library(args)
    try:
        library.delete_document(args.document_id)
    finally:
        library.store.close()
    _status("Deleted {}".format(args.document_id))
    return 0


async def _read(machine: ReadingSessionMachine, preset: str, color: bool) -> None:
    """Play ``machine`` until the last word, redrawing each word in place."""
    done = asyncio.Event()

    def draw(current: ReadingSessionMachine) -> None:
        word = current.current_word
        text = render_word(word, preset, color=color) if word is not None else ""
        sys.stdout.write("\r\x1b[2K{}".format(text))
        sys.stdout.flush()
        if current.state is SessionState.COMPLETED:
            done.set()

    clock = PlaybackClock(machine, AsyncioScheduler(), on_tick=draw)
    try:
        draw(machine)
        if machine.state is not SessionState.COMPLETED:
            clock.start()
        await done.wait()
    finally:
        clock.close()
        sys.stdout.write("\n")
        sys.stdout.flush()


def cmd_read(args: argparse.Namespace) -> int:
    """Read a document in the terminal, resuming saved progress."""
    library = _open_library(args)
    try:
        machine = library.open_reader(args.document_id, speed_wpm=args.wpm)
        _status("Reading at {} wpm from word {} of {} (Ctrl-C to stop)".format(
            machine.speed_wpm, machine.current_word_index + 1, machine.total_words,
        ))
        try:
            asyncio.run(_read(machine, args.preset, args.color))
        except KeyboardInterrupt:
            _status("Stopped at word {} of {}; progress saved.".format(
                machine.current_word_index + 1, machine.total_words,
            ))
            return 130
        _status("Finished: {} words in {}".format(
            machine.words_read, _format_duration(machine.time_spent),
        ))
    finally:
        library.store.close()
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from flowread.server.app import run_api
    run_api(host=args.host, port=args.port)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands.

    RULES:
    - --database-url / --data-dir override the environment configuration
    - Every subcommand sets ``func`` to its handler
    """
    parser = argparse.ArgumentParser(
        prog="flowread",
        description="Speed-read documents one colour-coded word at a time.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (default: $FLOWREAD_DATABASE_URL).",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory for the local JSON store (default: %s)." % config.DATA_DIR,
    )
    parser.add_argument(
        "--lang",
        default=config.HYPHENATION_LANG,
        help="Hyphenation language (default: %(default)s).",
    )

    display = argparse.ArgumentParser(add_help=False)
    display.add_argument(
        "--preset",
        choices=sorted(config.COLOR_PRESETS),
        default=config.DEFAULT_PRESET,
        help="Colour preset (default: %(default)s).",
    )
    display.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=sys.stdout.isatty(),
        help="Colour vowels and consonants (default: on for terminals).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser(
        "tokenize", parents=[display], help="Show a file's words split into syllables.",
    )
    p.add_argument("file", help="Path to a .pdf, .docx or .txt file.")
    p.add_argument("--json", action="store_true", help="Print word annotations as JSON.")
    p.set_defaults(func=cmd_tokenize)

    p = subparsers.add_parser("upload", help="Add a document to the library.")
    p.add_argument("file", help="Path to a .pdf, .docx or .txt file.")
    p.set_defaults(func=cmd_upload)

    p = subparsers.add_parser("library", help="List documents and reading progress.")
    p.set_defaults(func=cmd_library)

    p = subparsers.add_parser("stats", help="Show reading statistics.")
    p.add_argument("--json", action="store_true", help="Print statistics as JSON.")
    p.set_defaults(func=cmd_stats)

    p = subparsers.add_parser("delete", help="Delete a document and its sessions.")
    p.add_argument("document_id")
    p.set_defaults(func=cmd_delete)

    p = subparsers.add_parser("read", parents=[display], help="Read a document in the terminal.")
    p.add_argument("document_id")
    p.add_argument(
        "--wpm",
        type=int,
        default=None,
        help="Reading speed in words per minute ({}-{}).".format(config.MIN_WPM, config.MAX_WPM),
    )
    p.set_defaults(func=cmd_read)

    p = subparsers.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        code = args.func(args)
    except FlowReadError as exc:
        _status("Error: {}".format(exc))
        code = 1
    except OSError as exc:
        _status("Error: {}".format(exc))
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
