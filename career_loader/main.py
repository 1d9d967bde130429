"""Command-line entry point.

Usage:
    career-loader page.html --faculty-id 86 --save --migrate
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from career_loader.exceptions import DatabaseConnectionError
from career_loader.schemas.career import Career, SyncReport
from career_loader.services.catalog_service import CatalogService
from career_loader.services.sync_service import CareerSyncService
from career_loader.utils.db import close_db, get_session, init_db
from career_loader.utils.logging import setup_logging
from career_loader.utils.store import SqlAlchemyRowStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="career-loader",
        description="Extract a career curriculum from a catalog page and store it.",
    )
    parser.add_argument("html_file", type=Path, help="Saved catalog page (HTML)")
    parser.add_argument("--faculty-id", help="Override the extracted faculty id")
    parser.add_argument("--faculty-name", help="Override the extracted faculty name")
    parser.add_argument(
        "--save", action="store_true", help="Persist the career to the database"
    )
    parser.add_argument(
        "--migrate", action="store_true", help="Run migrations before saving"
    )
    parser.add_argument(
        "--output", type=Path, help="Write the career JSON here instead of stdout"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log at DEBUG level"
    )
    return parser


def is_safe_to_persist(career: Career) -> bool:
    """A career may be stored once it has an id and at least one subject."""
    return bool(career.id) and bool(career.subjects)


async def save_career(career: Career, migrate: bool) -> SyncReport:
    """Sync a career through the SQLAlchemy row store."""
    try:
        await init_db(migrate=migrate)
        session = await get_session()
        async with session:
            return await CareerSyncService(SqlAlchemyRowStore(session)).sync(career)
    finally:
        await close_db()


def dump_json(data: dict) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the loader and return the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    try:
        raw_html = args.html_file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.error("Could not read catalog page", extra={"path": str(args.html_file)})
        print(f"Could not read {args.html_file}: {e}", file=sys.stderr)
        return 2

    career = CatalogService().process(
        raw_html, faculty_id=args.faculty_id, faculty_name=args.faculty_name
    )

    career_json = dump_json(career.to_dict())
    if args.output:
        args.output.write_text(career_json, encoding="utf-8")
    else:
        print(career_json)

    if not args.save:
        return 0

    career.safe = is_safe_to_persist(career)
    try:
        report = asyncio.run(save_career(career, migrate=args.migrate))
    except DatabaseConnectionError as e:
        print(f"Database unavailable: {e}", file=sys.stderr)
        return 1

    print(dump_json(report.to_dict()))
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
