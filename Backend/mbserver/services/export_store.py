import datetime
import logging
from pathlib import Path
from typing import List, Optional, Set

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from mbserver.core.exceptions import ExportError
from mbserver.services.export_tables import REPLICATION_TABLES, SANITISED_EDITOR_TABLE

logger = logging.getLogger(__name__)

# Schemas other than the default one whose tables are exported
EXPORTED_SCHEMAS = ("statistics", "cover_art_archive", "wikidocs", "documentation")


class ExportStore:
    """
    Storage operations the export sequencer needs. SqlExportStore is the real
    implementation; tests substitute an in-memory one.
    """

    async def begin(self, lock_replication: bool = True) -> None:
        raise NotImplementedError

    async def close(self, commit: bool = True) -> None:
        raise NotImplementedError

    async def current_timestamp(self) -> datetime.datetime:
        raise NotImplementedError

    async def list_tables(self) -> List[str]:
        raise NotImplementedError

    async def create_sanitised_editor(self) -> None:
        raise NotImplementedError

    async def dump_table(self, table: str, path: Path) -> int:
        """Write the table to path in COPY text format, returning the row count."""
        raise NotImplementedError

    async def count_rows(self, table: str) -> int:
        raise NotImplementedError

    async def pending_table_names(self) -> Set[str]:
        raise NotImplementedError

    async def get_replication_sequence(self) -> Optional[int]:
        raise NotImplementedError

    async def set_replication_sequence(self, sequence: int) -> None:
        """Store the checkpoint; raises ExportError when there is no control row to update."""
        raise NotImplementedError

    async def clear_replication_tables(self) -> None:
        raise NotImplementedError


def _quote_table(table: str) -> str:
    return ".".join(f'"{part}"' for part in table.split("."))


class SqlExportStore(ExportStore):
    """
    ExportStore over a single PostgreSQL connection. Everything runs inside one
    serializable transaction so the dumped tables and the replication packet
    describe the same point in time.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.conn: Optional[AsyncConnection] = None
        self._transaction = None

    async def begin(self, lock_replication: bool = True) -> None:
        self.conn = await self.engine.connect()
        self.conn = await self.conn.execution_options(isolation_level="SERIALIZABLE")
        self._transaction = await self.conn.begin()
        if lock_replication:
            # New replication rows must wait until this export has drained the staging tables
            await self.conn.execute(text(
                f"LOCK TABLE {', '.join(REPLICATION_TABLES)} IN EXCLUSIVE MODE"
            ))

    async def close(self, commit: bool = True) -> None:
        if self.conn is None:
            return
        try:
            if self._transaction is not None and self._transaction.is_active:
                if commit:
                    await self._transaction.commit()
                else:
                    await self._transaction.rollback()
        finally:
            # Dropping the connection also discards the temporary view
            await self.conn.close()
            self.conn = None
            await self.engine.dispose()

    async def current_timestamp(self) -> datetime.datetime:
        return (await self.conn.execute(text("SELECT now()"))).scalar_one()

    async def list_tables(self) -> List[str]:
        def _inspect(sync_conn) -> List[str]:
            inspector = inspect(sync_conn)
            tables = list(inspector.get_table_names())
            for schema in EXPORTED_SCHEMAS:
                if schema in inspector.get_schema_names():
                    tables.extend(f"{schema}.{name}" for name in inspector.get_table_names(schema=schema))
            return tables

        return await self.conn.run_sync(_inspect)

    async def create_sanitised_editor(self) -> None:
        await self.conn.execute(text(
            f"""
            CREATE TEMPORARY VIEW {SANITISED_EDITOR_TABLE} AS
            SELECT id, name, 0 AS privs, '' AS email, NULL::text AS bio,
                   member_since, NULL::timestamptz AS last_login_date,
                   '' AS password, deleted
            FROM editor
            """
        ))

    async def dump_table(self, table: str, path: Path) -> int:
        raw = await self.conn.get_raw_connection()
        # asyncpg's native COPY, the same format psql's \copy produces
        status = await raw.driver_connection.copy_from_query(
            f"SELECT * FROM {_quote_table(table)}",
            output=str(path),
            format="text",
        )
        rows = int(status.split()[-1]) if status else 0
        logger.info(f"Dumped {table}: {rows} rows")
        return rows

    async def count_rows(self, table: str) -> int:
        return (await self.conn.execute(text(f"SELECT count(*) FROM {_quote_table(table)}"))).scalar_one()

    async def pending_table_names(self) -> Set[str]:
        result = await self.conn.execute(text("SELECT DISTINCT tablename FROM dbmirror_pending"))
        return {name.replace('"', "") for name in result.scalars().all()}

    async def get_replication_sequence(self) -> Optional[int]:
        result = await self.conn.execute(text(
            "SELECT current_replication_sequence FROM replication_control"
        ))
        return result.scalar_one_or_none()

    async def set_replication_sequence(self, sequence: int) -> None:
        result = await self.conn.execute(
            text(
                "UPDATE replication_control "
                "SET current_replication_sequence = :sequence, last_replication_date = now()"
            ),
            {"sequence": sequence},
        )
        if result.rowcount != 1:
            raise ExportError(
                f"replication_control must hold exactly one row, found {result.rowcount}; "
                "the replication checkpoint cannot be stored"
            )

    async def clear_replication_tables(self) -> None:
        await self.conn.execute(text("DELETE FROM dbmirror_pendingdata"))
        await self.conn.execute(text("DELETE FROM dbmirror_pending"))
