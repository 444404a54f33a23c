#!/usr/bin/env python3
"""
export_all_tables.py - dump the database into mbdump*.tar.bz2 bundles

Takes a consistent snapshot of every exported table, optionally together with
a replication packet of the rows changed since the previous run, and writes
signed checksums next to the bundles.

Usage:
    # Full export, bundles in the current directory
    python scripts/export_all_tables.py --output-dir /srv/ftp/data/fullexport

    # Hourly replication packet only
    python scripts/export_all_tables.py --with-replication --without-full-export

    # Raw table files for two tables, no bundles
    python scripts/export_all_tables.py --nocompress --keep-files --table artist --table release

    # Report tables the export does not cover
    python scripts/export_all_tables.py --check-completeness

Exit status: 0 on success, 1 on invalid options, 2 when the export failed,
3 when interrupted.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Add the 'Backend' directory to the system path so we can import from the 'mbserver' package.
backend_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'Backend'))
if backend_dir not in sys.path:
    sys.path.append(backend_dir)

# Load the .env file from the project root before the settings are read.
project_root = os.path.dirname(backend_dir)
load_dotenv(os.path.join(project_root, ".env"))

from mbserver.core.config import settings
from mbserver.core.exceptions import ExportError
from mbserver.services.archive_signer import GpgArchiveSigner
from mbserver.services.database import make_engine
from mbserver.services.export_service import ExportOptions, ExportService
from mbserver.services.export_store import SqlExportStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 2
EXIT_INTERRUPTED = 3

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export the MusicBrainz database tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--output-dir", type=Path, default=Path(settings.EXPORT_OUTPUT_DIR),
                        help="where the bundles and checksums are written")
    parser.add_argument("--tmp-dir", type=Path, default=Path(settings.EXPORT_TMP_DIR),
                        help="where the table files are staged")
    parser.add_argument("--compress", dest="compress", action="store_true", default=True,
                        help="create .tar.bz2 bundles (default)")
    parser.add_argument("--nocompress", dest="compress", action="store_false",
                        help="don't create bundles; requires --keep-files")
    parser.add_argument("--keep-files", action="store_true",
                        help="copy the raw table files to the output directory")
    parser.add_argument("--database", default=settings.DATABASE_URL,
                        help="database URL to export from")
    parser.add_argument("--table", dest="tables", action="append", default=[], metavar="TABLE",
                        help="export only this table (repeatable)")
    parser.add_argument("--with-replication", dest="with_replication", action="store_true", default=False,
                        help="produce a replication packet")
    parser.add_argument("--without-replication", dest="with_replication", action="store_false")
    parser.add_argument("--with-full-export", dest="with_full_export", action="store_true", default=True,
                        help="dump every table (default)")
    parser.add_argument("--without-full-export", dest="with_full_export", action="store_false")
    parser.add_argument("--replication-callback", default=None, metavar="COMMAND",
                        help="run COMMAND with the path of each new replication packet")
    parser.add_argument("--check-completeness", action="store_true",
                        help="only report tables missing from the export list")
    return parser

def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> Optional[str]:
    """Return a usage error for invalid flag combinations."""
    if args.check_completeness:
        return None
    if not args.compress and not args.keep_files:
        return "--nocompress requires --keep-files, otherwise nothing would be kept"
    if not args.with_full_export and not args.with_replication:
        return "--without-full-export and --without-replication leave nothing to do"
    return None

def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt()

async def run_export(args: argparse.Namespace) -> int:
    engine = make_engine(args.database)
    service = ExportService(
        SqlExportStore(engine),
        GpgArchiveSigner(sign_key=settings.GPG_SIGN_KEY),
        schema_sequence=settings.DB_SCHEMA_SEQUENCE,
        sign=bool(settings.GPG_SIGN_KEY),
        encrypt_recipient=settings.GPG_ENCRYPT_RECIPIENT,
    )

    if args.check_completeness:
        await service.check_completeness()
        return EXIT_OK

    options = ExportOptions(
        output_dir=args.output_dir,
        tmp_dir=args.tmp_dir,
        compress=args.compress,
        keep_files=args.keep_files,
        tables=args.tables,
        with_replication=args.with_replication,
        with_full_export=args.with_full_export,
        replication_callback=args.replication_callback,
    )
    result = await service.run(options)

    logger.info(f"Dumped {len(result.dumped)} tables")
    if result.replication_packet:
        logger.info(f"Replication packet: {result.replication_packet}")
    for archive in result.archives:
        logger.info(f"Bundle: {archive}")
    return EXIT_OK

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    error = validate_args(parser, args)
    if error:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {error}", file=sys.stderr)
        return EXIT_USAGE

    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        return asyncio.run(run_export(args))
    except KeyboardInterrupt:
        logger.error("Interrupted")
        if hasattr(os, "sync"):
            os.sync()
        return EXIT_INTERRUPTED
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        return EXIT_FAILED

if __name__ == "__main__":
    sys.exit(main())
