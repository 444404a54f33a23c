"""
test_export_service.py - full export and replication packet sequencing

Cases:
- TC1: --table restricts the dump, markers are written
- TC2: replication checkpoint starts at 0 and only advances with pending rows
- TC3: replication packet contents, license and callback
- TC4: bundles, checksums, signatures, private encryption
- TC5: lock contention, rollback, temporary directory retention
- TC6: completeness report
"""

import copy
import datetime
import tarfile
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from filelock import FileLock

from mbserver.core.exceptions import ExportError, ExternalToolFailure, LockContention
from mbserver.services.archive_signer import GpgArchiveSigner
from mbserver.services.export_service import LOCK_FILENAME, ExportOptions, ExportService
from mbserver.services.export_store import ExportStore, SqlExportStore

SCHEMA_SEQUENCE = 29
EXPORT_TIME = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)


class InMemoryExportStore(ExportStore):
    """Tables are lists of COPY lines; a rollback restores the snapshot taken at begin()."""

    def __init__(self, tables: Optional[Dict[str, List[str]]] = None, sequence: Optional[int] = None):
        self.tables = tables or {}
        self.sequence = sequence
        self.pending: List[str] = []
        self.has_control_row = True
        self.events: List[str] = []
        self._snapshot = None

    async def begin(self, lock_replication: bool = True) -> None:
        self.events.append("begin" if lock_replication else "begin-unlocked")
        self._snapshot = (copy.deepcopy(self.tables), self.sequence, list(self.pending))

    async def close(self, commit: bool = True) -> None:
        self.events.append("commit" if commit else "rollback")
        if not commit:
            self.tables, self.sequence, self.pending = self._snapshot

    async def current_timestamp(self) -> datetime.datetime:
        return EXPORT_TIME

    async def list_tables(self) -> List[str]:
        return list(self.tables)

    async def create_sanitised_editor(self) -> None:
        self.events.append("sanitise")
        self.tables["editor_sanitised"] = [
            row.split("\t")[0] + "\t" + row.split("\t")[1] for row in self.tables.get("editor", [])
        ]

    async def dump_table(self, table: str, path: Path) -> int:
        if table == "replication_control":
            sequence = "\\N" if self.sequence is None else self.sequence
            rows = [f"1\t{SCHEMA_SEQUENCE}\t{sequence}"]
        elif table == "dbmirror_pending":
            rows = [f"{i}\t{name}\ti\t1" for i, name in enumerate(self.pending, start=1)]
        elif table == "dbmirror_pendingdata":
            rows = [f"{i}\tf\tdata" for i in range(1, len(self.pending) + 1)]
        else:
            rows = self.tables.get(table, [])
        path.write_text("".join(f"{row}\n" for row in rows), encoding="utf-8")
        return len(rows)

    async def count_rows(self, table: str) -> int:
        return len(self.pending)

    async def pending_table_names(self):
        return {name.replace('"', "") for name in self.pending}

    async def get_replication_sequence(self) -> Optional[int]:
        return self.sequence

    async def set_replication_sequence(self, sequence: int) -> None:
        if not self.has_control_row:
            raise ExportError("replication_control must hold exactly one row, found 0")
        self.sequence = sequence

    async def clear_replication_tables(self) -> None:
        self.pending = []


class RecordingSigner(GpgArchiveSigner):
    """Real archives and checksums; signing, encryption and callbacks are recorded."""

    def __init__(self, fail_on: Optional[str] = None):
        super().__init__()
        self.fail_on = fail_on
        self.signed: List[str] = []
        self.encrypted: List[str] = []
        self.callbacks: List[str] = []

    def create_archive(self, archive_path, base_dir, members):
        if self.fail_on and archive_path.name.startswith(self.fail_on):
            raise ExternalToolFailure("tar", "disk full")
        return super().create_archive(archive_path, base_dir, members)

    def sign(self, path):
        self.signed.append(path.name)
        signature = path.with_name(path.name + ".asc")
        signature.write_text("signature")
        return signature

    def encrypt(self, path, recipient):
        self.encrypted.append(path.name)
        encrypted = path.with_name(path.name + ".gpg")
        encrypted.write_bytes(path.read_bytes())
        return encrypted

    def run_callback(self, command, packet):
        self.callbacks.append(packet.name)


@pytest.fixture
def store() -> InMemoryExportStore:
    return InMemoryExportStore({
        "artist": ["1\tPink Floyd"],
        "release": ["1\tWish You Were Here"],
        "editor": ["1\ttester\tsecret@example.com"],
        "editor_preference": ["1\t1\ttimezone\tUTC"],
    })


@pytest.fixture
def signer() -> RecordingSigner:
    return RecordingSigner()


@pytest.fixture
def dirs(tmp_path: Path):
    output_dir = tmp_path / "out"
    tmp_dir = tmp_path / "tmp"
    tmp_dir.mkdir()
    return output_dir, tmp_dir


def _options(dirs, **kwargs) -> ExportOptions:
    output_dir, tmp_dir = dirs
    return ExportOptions(output_dir=output_dir, tmp_dir=tmp_dir, **kwargs)


def _members(archive: Path) -> List[str]:
    with tarfile.open(archive, "r:bz2") as tar:
        return tar.getnames()


def _read_member(archive: Path, name: str) -> str:
    with tarfile.open(archive, "r:bz2") as tar:
        return tar.extractfile(name).read().decode("utf-8")


# =============================================================================
# TC1: restricted dump and markers
# =============================================================================

class TestRestrictedDump:

    @pytest.mark.asyncio
    async def test_single_table(self, store, signer, dirs):
        output_dir, tmp_dir = dirs
        service = ExportService(store, signer, SCHEMA_SEQUENCE)

        result = await service.run(_options(dirs, compress=False, keep_files=True, tables=["artist"]))

        assert set(result.dumped) == {"artist", "replication_control"}
        assert (output_dir / "mbdump" / "artist").read_text() == "1\tPink Floyd\n"
        assert not (output_dir / "mbdump" / "release").exists()
        assert (output_dir / "SCHEMA_SEQUENCE").read_text() == "29\n"
        assert (output_dir / "TIMESTAMP").read_text().startswith("2024-05-01 12:00:00")
        assert (output_dir / "REPLICATION_SEQUENCE").read_text() == "\n"
        assert (output_dir / "README").exists()
        assert list(output_dir.glob("*.tar.bz2")) == []
        # Temporary directory is gone
        assert list(tmp_dir.iterdir()) == []
        assert store.events == ["begin", "commit"]


# =============================================================================
# TC2: replication checkpoint
# =============================================================================

class TestReplicationSequence:

    @pytest.mark.asyncio
    async def test_first_run_starts_at_zero(self, store, signer, dirs):
        output_dir, _ = dirs
        options = _options(dirs, compress=False, keep_files=True, with_replication=True, with_full_export=False)

        first = await ExportService(store, signer, SCHEMA_SEQUENCE).run(options)
        second = await ExportService(store, signer, SCHEMA_SEQUENCE).run(options)

        assert first.replication_sequence == 0
        assert second.replication_sequence == 0
        assert store.sequence == 0
        assert (output_dir / "REPLICATION_SEQUENCE").read_text() == "0\n"
        assert first.replication_packet is None
        assert second.replication_packet is None

    @pytest.mark.asyncio
    async def test_unchanged_without_pending_rows(self, store, signer, dirs):
        store.sequence = 41

        result = await ExportService(store, signer, SCHEMA_SEQUENCE).run(
            _options(dirs, with_replication=True, with_full_export=False)
        )

        assert result.replication_sequence == 41
        assert store.sequence == 41
        assert result.replication_packet is None
        assert signer.callbacks == []

    @pytest.mark.asyncio
    async def test_advances_with_pending_rows(self, store, signer, dirs):
        store.sequence = 41
        store.pending = ['"musicbrainz"."artist"']

        result = await ExportService(store, signer, SCHEMA_SEQUENCE).run(
            _options(dirs, with_replication=True, with_full_export=False)
        )

        assert result.replication_sequence == 42
        assert store.sequence == 42
        assert store.pending == []

    @pytest.mark.asyncio
    async def test_missing_control_row_keeps_pending_rows(self, store, signer, dirs):
        _, tmp_dir = dirs
        store.has_control_row = False
        store.pending = ['"musicbrainz"."artist"']

        with pytest.raises(ExportError):
            await ExportService(store, signer, SCHEMA_SEQUENCE).run(
                _options(dirs, with_replication=True, with_full_export=False)
            )

        assert store.events[-1] == "rollback"
        assert store.sequence is None
        assert store.pending == ['"musicbrainz"."artist"']
        # Nothing was drained, so the staged files are not needed
        assert list(tmp_dir.iterdir()) == []


class TestSqlCheckpoint:

    @staticmethod
    def _store(rowcount: int) -> SqlExportStore:
        store = SqlExportStore(engine=None)

        async def execute(statement, params=None):
            return SimpleNamespace(rowcount=rowcount)

        store.conn = SimpleNamespace(execute=execute)
        return store

    @pytest.mark.asyncio
    async def test_updates_the_control_row(self):
        await self._store(rowcount=1).set_replication_sequence(5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rowcount", [0, 2])
    async def test_rejects_missing_or_duplicate_rows(self, rowcount):
        with pytest.raises(ExportError) as exc_info:
            await self._store(rowcount=rowcount).set_replication_sequence(5)

        assert f"found {rowcount}" in str(exc_info.value)


# =============================================================================
# TC3: replication packet
# =============================================================================

class TestReplicationPacket:

    @pytest.mark.asyncio
    async def test_packet(self, store, signer, dirs):
        output_dir, _ = dirs
        store.sequence = 7
        store.pending = ['"musicbrainz"."artist"', '"musicbrainz"."artist"']
        service = ExportService(store, signer, SCHEMA_SEQUENCE, sign=True)

        result = await service.run(_options(
            dirs, with_replication=True, with_full_export=False, replication_callback="/usr/local/bin/notify"
        ))

        packet = output_dir / "replication-8-v2.tar.bz2"
        assert result.replication_packet == packet
        members = _members(packet)
        assert "mbdump/dbmirror_pending" in members
        assert "mbdump/dbmirror_pendingdata" in members
        assert "mbdump/artist" not in members
        assert _read_member(packet, "REPLICATION_SEQUENCE") == "8\n"
        assert "CC0" in _read_member(packet, "COPYING")
        assert signer.signed == ["replication-8-v2.tar.bz2"]
        assert signer.callbacks == ["replication-8-v2.tar.bz2"]
        # No full export, so no bundles
        assert result.archives == []

    @pytest.mark.asyncio
    async def test_packet_license_follows_changed_tables(self, store, signer, dirs):
        output_dir, _ = dirs
        store.sequence = 7
        store.pending = ['"musicbrainz"."artist"', '"musicbrainz"."release_group_meta"']

        await ExportService(store, signer, SCHEMA_SEQUENCE).run(
            _options(dirs, with_replication=True, with_full_export=False)
        )

        assert "Attribution-NonCommercial-ShareAlike" in _read_member(
            output_dir / "replication-8-v2.tar.bz2", "COPYING"
        )


# =============================================================================
# TC4: full export bundles
# =============================================================================

class TestFullExport:

    @pytest.mark.asyncio
    async def test_bundles(self, store, signer, dirs):
        output_dir, _ = dirs
        service = ExportService(store, signer, SCHEMA_SEQUENCE, sign=True, encrypt_recipient="private@example.com")

        result = await service.run(_options(dirs))

        core = output_dir / "mbdump.tar.bz2"
        assert "mbdump/artist" in _members(core)
        assert "mbdump/replication_control" in _members(core)
        assert "COPYING" in _members(core)

        editor_members = _members(output_dir / "mbdump-editor.tar.bz2")
        assert "mbdump/editor_sanitised" in editor_members
        assert "sanitise" in store.events
        assert "secret@example.com" not in _read_member(
            output_dir / "mbdump-editor.tar.bz2", "mbdump/editor_sanitised"
        )

        # Private data only leaves the machine encrypted
        assert signer.encrypted == ["mbdump-private.tar.bz2"]
        assert not (output_dir / "mbdump-private.tar.bz2").exists()
        assert (output_dir / "mbdump-private.tar.bz2.gpg") in result.archives
        assert "COPYING" not in _members(output_dir / "mbdump-private.tar.bz2.gpg")

        md5sums = (output_dir / "MD5SUMS").read_text()
        assert "mbdump.tar.bz2" in md5sums
        assert "mbdump-private" not in md5sums
        assert (output_dir / "SHA256SUMS").exists()
        assert sorted(signer.signed) == ["MD5SUMS", "SHA256SUMS"]

    @pytest.mark.asyncio
    async def test_private_bundle_kept_without_recipient(self, store, signer, dirs):
        output_dir, _ = dirs

        await ExportService(store, signer, SCHEMA_SEQUENCE).run(_options(dirs))

        assert (output_dir / "mbdump-private.tar.bz2").exists()
        assert signer.encrypted == []
        assert signer.signed == []


# =============================================================================
# TC5: failures
# =============================================================================

class TestFailures:

    @pytest.mark.asyncio
    async def test_lock_contention(self, store, signer, dirs):
        output_dir, _ = dirs
        output_dir.mkdir()
        held = FileLock(str(output_dir / LOCK_FILENAME))
        held.acquire()
        try:
            with pytest.raises(LockContention):
                await ExportService(store, signer, SCHEMA_SEQUENCE).run(_options(dirs))
        finally:
            held.release()

        assert store.events == []

    @pytest.mark.asyncio
    async def test_dump_failure_rolls_back(self, store, signer, dirs, monkeypatch):
        _, tmp_dir = dirs
        store.sequence = 3
        store.pending = ['"musicbrainz"."artist"']
        original = store.dump_table

        async def failing_dump(table, path):
            if table == "replication_control":
                raise RuntimeError("connection lost")
            return await original(table, path)

        monkeypatch.setattr(store, "dump_table", failing_dump)

        with pytest.raises(RuntimeError):
            await ExportService(store, signer, SCHEMA_SEQUENCE).run(
                _options(dirs, with_replication=True, with_full_export=False)
            )

        assert store.events[-1] == "rollback"
        assert store.sequence == 3
        assert store.pending == ['"musicbrainz"."artist"']

    @pytest.mark.asyncio
    async def test_tmp_dir_kept_after_replication_cleared(self, store, dirs):
        _, tmp_dir = dirs
        store.sequence = 3
        store.pending = ['"musicbrainz"."artist"']
        service = ExportService(store, RecordingSigner(fail_on="replication-"), SCHEMA_SEQUENCE)

        with pytest.raises(ExternalToolFailure):
            await service.run(_options(dirs, with_replication=True, with_full_export=False))

        assert store.pending == []
        kept = list(tmp_dir.iterdir())
        assert kept == [service.export_dir]
        assert (service.export_dir / "mbdump" / "dbmirror_pending").exists()

    @pytest.mark.asyncio
    async def test_tmp_dir_removed_on_other_failures(self, store, dirs):
        _, tmp_dir = dirs
        service = ExportService(store, RecordingSigner(fail_on="mbdump"), SCHEMA_SEQUENCE)

        with pytest.raises(ExternalToolFailure):
            await service.run(_options(dirs))

        assert list(tmp_dir.iterdir()) == []


# =============================================================================
# TC6: completeness
# =============================================================================

class TestCompleteness:

    @pytest.mark.asyncio
    async def test_reports_both_directions(self, store, signer):
        store.tables["shiny_new_table"] = []

        report = await ExportService(store, signer, SCHEMA_SEQUENCE).check_completeness()

        assert report.missing_from_export == ["shiny_new_table"]
        assert "cdtoc" in report.missing_from_schema
        assert "editor_sanitised" not in report.missing_from_schema
        assert not report.complete
        assert store.events == ["begin-unlocked", "commit"]
