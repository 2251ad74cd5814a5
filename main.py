#!/usr/bin/env python3
"""IDX Watch: disclosure announcement triage powered by PydanticAI.

This CLI tool scrapes the Indonesia Stock Exchange disclosure listing,
filters routine announcements, reads the attached PDFs with an AI model,
and emails a report of the announcements worth an investor's attention.

Commands:
    run         Triage one day of announcements and deliver the report
    status      Show the effective configuration
    classify    Judge local PDF files with the classifier
    filter      Check titles against the noise patterns

Examples:
    python main.py run                          # Today's announcements
    python main.py run --date 2025-09-18        # A specific day
    python main.py run --save-raw batch.json    # Keep the scraped batch
    python main.py run --input batch.json --no-email
    python main.py classify notice.pdf --title "Rencana Akuisisi"
    python main.py filter "Laporan Kepemilikan Saham - PT X"

Environment:
    GEMINI_API_KEY: Required for the classifier
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from config import Config
from observability.logging import setup_logging

_SECRET_FIELDS = ("gemini_api_key", "mailjet_api_key", "mailjet_api_secret", "logfire_token")


def _today(config: Config) -> date:
    """Current date on the exchange's clock."""
    return datetime.now(ZoneInfo(config.timezone)).date()


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Execute one triage batch.

    Returns:
        Exit code (0 for success, 1 if the run aborted)
    """
    from pipeline import run_once

    logger = logging.getLogger(__name__)
    day = args.date or _today(config)

    try:
        stats = asyncio.run(run_once(
            config,
            day,
            input_path=args.input,
            save_raw=args.save_raw,
            send_email=not args.no_email,
        ))
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT

    logger.info("Run complete | stats=%s", json.dumps(stats.to_dict()))
    return 0 if stats.completed else 1


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display the effective configuration with secrets masked."""
    status = asdict(config)
    for key in _SECRET_FIELDS:
        if status[key]:
            status[key] = "***"
    status["prompt_template"] = "custom" if config.prompt_template else "built-in"
    status["noise_patterns"] = len(config.noise_patterns)
    status["email_enabled"] = config.email_enabled
    status["today"] = _today(config).isoformat()

    print(json.dumps(status, indent=2, default=str))
    return 0


def cmd_classify(args: argparse.Namespace, config: Config) -> int:
    """Run extraction and the classifier on local PDF files."""
    from agents.classifier import ClassifierAgent
    from pipeline import PipelineStats, combine_documents

    stats = PipelineStats()
    buffers = [path.read_bytes() for path in args.files]
    text, scanned = combine_documents(buffers, config.scanned_text_threshold, stats)
    print(f"text={stats.text_pdfs} scanned={stats.scanned_pdfs} unreadable={stats.extraction_errors}")

    classifier = ClassifierAgent(config)
    verdict = asyncio.run(classifier.classify(text, scanned, args.title))
    print(verdict.model_dump_json(indent=2))
    return 0


def cmd_filter(args: argparse.Namespace, config: Config) -> int:
    """Print whether each title is filtered as noise."""
    from filters import is_noise

    for title in args.titles:
        label = "noise" if is_noise(title, config.noise_patterns) else "keep"
        print(f"{label}\t{title}")
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="IDX Watch: disclosure announcement triage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Triage one day of announcements")
    run_parser.add_argument(
        "--date",
        type=_parse_date,
        help="Disclosure date YYYY-MM-DD (default: today in TIMEZONE)",
    )
    run_parser.add_argument(
        "--input",
        type=Path,
        help="Replay announcements from a JSON file instead of scraping",
    )
    run_parser.add_argument(
        "--save-raw",
        type=Path,
        help="Save the scraped announcements to a JSON file",
    )
    run_parser.add_argument(
        "--no-email",
        action="store_true",
        help="Do not send the email report",
    )
    run_parser.add_argument(
        "--lang",
        choices=["id", "en"],
        help="Reasoning language (default: id)",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration")

    # classify command
    classify_parser = subparsers.add_parser("classify", help="Judge local PDF files")
    classify_parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="PDF files belonging to one announcement",
    )
    classify_parser.add_argument(
        "--title",
        default="",
        help="Announcement title",
    )
    classify_parser.add_argument(
        "--lang",
        choices=["id", "en"],
        help="Reasoning language (default: id)",
    )

    # filter command
    filter_parser = subparsers.add_parser("filter", help="Check titles against noise patterns")
    filter_parser.add_argument(
        "titles",
        nargs="+",
        help="Announcement titles",
    )

    args = parser.parse_args()

    try:
        config = Config.load()
    except (ValueError, OSError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if getattr(args, "lang", None):
        config.language = args.lang

    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that call the model
    if args.command in ("run", "classify"):
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    commands = {
        "run": cmd_run,
        "status": cmd_status,
        "classify": cmd_classify,
        "filter": cmd_filter,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except Exception as e:
            logging.getLogger(__name__).error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
