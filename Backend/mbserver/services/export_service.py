import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from filelock import FileLock, Timeout

from mbserver.core.exceptions import LockContention
from mbserver.services.archive_signer import ArchiveSigner
from mbserver.services.export_store import ExportStore
from mbserver.services.export_tables import (
    FULL_EXPORT_TABLES,
    IGNORED_TABLES,
    LICENSE_TEXT,
    README_TEXT,
    REPLICATION_CONTROL_TABLE,
    REPLICATION_TABLES,
    SANITISED_EDITOR_TABLE,
    TABLE_GROUPS,
    most_restrictive_license,
)

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".mbexport.lock"
MARKER_FILES = ("README", "TIMESTAMP", "SCHEMA_SEQUENCE", "REPLICATION_SEQUENCE")


@dataclass
class ExportOptions:
    output_dir: Path
    tmp_dir: Path
    compress: bool = True
    keep_files: bool = False
    # Restricts the full export to these tables; empty means every table
    tables: List[str] = field(default_factory=list)
    with_replication: bool = False
    with_full_export: bool = True
    replication_callback: Optional[str] = None


@dataclass
class ExportResult:
    dumped: Dict[str, int] = field(default_factory=dict)
    replication_sequence: Optional[int] = None
    replication_packet: Optional[Path] = None
    archives: List[Path] = field(default_factory=list)
    checksum_files: List[Path] = field(default_factory=list)
    signatures: List[Path] = field(default_factory=list)


@dataclass
class CompletenessReport:
    # Schema tables that no export group covers
    missing_from_export: List[str] = field(default_factory=list)
    # Configured tables the schema does not have
    missing_from_schema: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing_from_export and not self.missing_from_schema


class ExportService:
    """
    Produces a point-in-time dump of the database, one bundle per table group,
    plus an optional replication packet of the rows changed since the last run.
    """

    def __init__(
        self,
        store: ExportStore,
        signer: ArchiveSigner,
        schema_sequence: int,
        sign: bool = False,
        encrypt_recipient: Optional[str] = None,
    ):
        self.store = store
        self.signer = signer
        self.schema_sequence = schema_sequence
        self.sign = sign
        self.encrypt_recipient = encrypt_recipient

        self.export_dir: Optional[Path] = None
        # Once the staging tables are cleared the dumped packet is the only
        # copy of that data, so the temporary directory must survive.
        self.cleanup_allowed = True

    async def run(self, options: ExportOptions) -> ExportResult:
        options.output_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(options.output_dir / LOCK_FILENAME))
        try:
            lock.acquire(timeout=0)
        except Timeout:
            raise LockContention(lock.lock_file)

        try:
            self.export_dir = Path(tempfile.mkdtemp(prefix="mbexport-", dir=options.tmp_dir))
            (self.export_dir / "mbdump").mkdir()
            logger.info(f"Exporting to {self.export_dir}")
            completed = False
            try:
                result = ExportResult()
                replication_tables = await self._dump(options, result)
                self._archive(options, result, replication_tables)
                if options.keep_files:
                    shutil.copytree(self.export_dir, options.output_dir, dirs_exist_ok=True)
                completed = True
                return result
            finally:
                self._finish(completed)
        finally:
            lock.release()

    def _write_marker(self, name: str, value) -> None:
        (self.export_dir / name).write_text(f"{'' if value is None else value}\n", encoding="utf-8")

    async def _dump(self, options: ExportOptions, result: ExportResult) -> Optional[set]:
        """
        Dump tables and drain the replication staging tables inside one
        transaction. Returns the table names the replication packet covers,
        or None when there is no packet to make.
        """
        mbdump = self.export_dir / "mbdump"
        packet_tables = None

        await self.store.begin()
        try:
            self._write_marker("TIMESTAMP", (await self.store.current_timestamp()).isoformat(sep=" "))
            self._write_marker("SCHEMA_SEQUENCE", self.schema_sequence)
            (self.export_dir / "README").write_text(README_TEXT, encoding="utf-8")

            if options.with_full_export:
                tables = options.tables or FULL_EXPORT_TABLES
                if SANITISED_EDITOR_TABLE in tables:
                    await self.store.create_sanitised_editor()
                for table in tables:
                    # Dumped below, after the checkpoint has been updated
                    if table == REPLICATION_CONTROL_TABLE or table in REPLICATION_TABLES:
                        continue
                    result.dumped[table] = await self.store.dump_table(table, mbdump / table)

            sequence = await self.store.get_replication_sequence()
            if options.with_replication:
                pending = await self.store.count_rows("dbmirror_pending")
                if pending or sequence is None:
                    sequence = 0 if sequence is None else sequence + 1
                    if pending:
                        packet_tables = await self.store.pending_table_names()
                    for table in REPLICATION_TABLES:
                        result.dumped[table] = await self.store.dump_table(table, mbdump / table)
                    # Raises before anything is cleared when the checkpoint can't be stored
                    await self.store.set_replication_sequence(sequence)
                    await self.store.clear_replication_tables()
                    self.cleanup_allowed = False
                    logger.info(f"Replication sequence advanced to {sequence} ({pending} pending rows)")
                else:
                    logger.info(f"No pending replication data, sequence stays at {sequence}")
                result.replication_sequence = sequence
                self._write_marker("REPLICATION_SEQUENCE", sequence)
            else:
                self._write_marker("REPLICATION_SEQUENCE", None)

            result.dumped[REPLICATION_CONTROL_TABLE] = await self.store.dump_table(
                REPLICATION_CONTROL_TABLE, mbdump / REPLICATION_CONTROL_TABLE
            )
        except BaseException:
            await self.store.close(commit=False)
            raise
        await self.store.close()

        return packet_tables

    def _set_license(self, license: Optional[str]) -> None:
        copying = self.export_dir / "COPYING"
        if license is None:
            copying.unlink(missing_ok=True)
        else:
            copying.write_text(LICENSE_TEXT[license], encoding="utf-8")

    def _bundle(self, archive: Path, license: Optional[str], tables: List[str]) -> Path:
        self._set_license(license)
        members = [*(["COPYING"] if license else []), *MARKER_FILES, *(f"mbdump/{t}" for t in tables)]
        return self.signer.create_archive(archive, self.export_dir, members)

    def _archive(self, options: ExportOptions, result: ExportResult, packet_tables: Optional[set]) -> None:
        if not options.compress:
            return

        if packet_tables is not None:
            packet = self._bundle(
                options.output_dir / f"replication-{result.replication_sequence}-v2.tar.bz2",
                most_restrictive_license(packet_tables),
                list(REPLICATION_TABLES),
            )
            result.replication_packet = packet
            if self.sign:
                result.signatures.append(self.signer.sign(packet))
            if options.replication_callback:
                self.signer.run_callback(options.replication_callback, packet)

        if not options.with_full_export:
            return

        private_archive = None
        public_archives = []
        for group in TABLE_GROUPS:
            tables = [t for t in group.tables if t in result.dumped]
            if not tables:
                continue
            archive = self._bundle(options.output_dir / group.archive_name, group.license, tables)
            result.archives.append(archive)
            if group.is_private:
                private_archive = archive
            else:
                public_archives.append(archive)

        if public_archives:
            result.checksum_files = self.signer.write_checksums(
                options.output_dir, [a.name for a in public_archives]
            )
            if self.sign:
                result.signatures.extend(self.signer.sign(f) for f in result.checksum_files)

        if private_archive is not None and self.encrypt_recipient:
            encrypted = self.signer.encrypt(private_archive, self.encrypt_recipient)
            private_archive.unlink()
            result.archives[result.archives.index(private_archive)] = encrypted

    def _finish(self, completed: bool) -> None:
        """Flush to disk, then drop the temporary directory where that is safe."""
        if hasattr(os, "sync"):
            os.sync()
        if self.export_dir is None:
            return
        if completed or self.cleanup_allowed:
            shutil.rmtree(self.export_dir, ignore_errors=True)
        else:
            logger.warning(
                f"Export did not finish after the replication tables were cleared; "
                f"keeping {self.export_dir}"
            )

    async def check_completeness(self) -> CompletenessReport:
        """Compare the export table list with the schema. Only reports."""
        await self.store.begin(lock_replication=False)
        try:
            schema_tables = set(await self.store.list_tables())
        finally:
            await self.store.close()

        exported = set(FULL_EXPORT_TABLES) | set(REPLICATION_TABLES)
        report = CompletenessReport(
            missing_from_export=sorted(
                t for t in schema_tables if t not in exported and t not in IGNORED_TABLES
            ),
            missing_from_schema=sorted(
                t for t in exported if t not in schema_tables and t != SANITISED_EDITOR_TABLE
            ),
        )
        for table in report.missing_from_export:
            logger.warning(f"Table {table} is not part of any export group")
        for table in report.missing_from_schema:
            logger.warning(f"Exported table {table} does not exist in the schema")
        if report.complete:
            logger.info("Export table list matches the schema")
        return report
