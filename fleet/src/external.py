"""
Access to the external database instance that fleet data is mirrored into.

The external database is configured with a full SQLAlchemy URL in
`EXTERNAL_DB_URL`. It is expected to carry the same schema as the primary
database, see `python -m fleet.setup -ext`.
"""

from logging import getLogger
from typing import Dict, List, Optional
from sqlalchemy import Table, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm.session import Session
from sqlalchemy.dialects import postgresql, sqlite

from fleet.src.constants import EXTERNAL_DB_URL, SYNC_BATCH_SIZE
from fleet.src.db import (
    Car,
    Driver,
    Route,
    Trip,
    Preorder,
    Ledger,
    EnergyLog,
    MaintenanceLog,
    PaymentMethod,
)

logger = getLogger("uvicorn.error")

# Tables mirrored when no explicit list is requested, parents first
SYNC_TABLES: Dict[str, Table] = {
    model.__tablename__: model.__table__
    for model in [
        Car,
        Driver,
        Route,
        Preorder,
        Trip,
        Ledger,
        EnergyLog,
        MaintenanceLog,
        PaymentMethod,
    ]
}

_engine: Optional[Engine] = None


def getEngine() -> Optional[Engine]:
    """Return the engine of the external database, None when it is not configured."""
    global _engine
    if not EXTERNAL_DB_URL:
        return None
    if _engine is None:
        _engine = create_engine(url=EXTERNAL_DB_URL, echo=False)
    return _engine


def _insert(engine: Engine, table: Table):
    if engine.dialect.name == "postgresql":
        return postgresql.insert(table)
    if engine.dialect.name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert is not supported on {engine.dialect.name}")


def upsertRows(
    engine: Engine, table: Table, rows: List[dict], batchSize: int = SYNC_BATCH_SIZE
) -> int:
    """
    Insert rows into the external table, updating the rows whose `id` already exists.
    Rows are sent `batchSize` at a time, all batches share one transaction.

    Returns:
        int: Number of rows written.
    """
    if not rows:
        return 0

    with engine.begin() as connection:
        for start in range(0, len(rows), batchSize):
            statement = _insert(engine, table).values(rows[start : start + batchSize])
            statement = statement.on_conflict_do_update(
                index_elements=[table.c.id],
                set_={
                    column.name: statement.excluded[column.name]
                    for column in table.columns
                    if column.name != "id"
                },
            )
            connection.execute(statement)
    return len(rows)


def syncTables(session: Session, engine: Engine, tableNames: List[str]) -> Dict[str, dict]:
    """
    Copy the full contents of the named tables into the external database.

    A failing or unknown table is reported in its own entry and does not stop
    the remaining tables.

    Returns:
        Dict[str, dict]: `{table_name: {"synced": int, "error": str}}`, where
        `error` is present only for failed tables.
    """
    results = {}
    for tableName in tableNames:
        table = SYNC_TABLES.get(tableName)
        if table is None:
            results[tableName] = {"synced": 0, "error": "Unknown table"}
            continue
        try:
            rows = [dict(row) for row in session.execute(select(table)).mappings()]
            results[tableName] = {"synced": upsertRows(engine, table, rows)}
        except Exception as e:
            logger.error(f"Sync of {tableName} failed: {e}")
            results[tableName] = {"synced": 0, "error": str(e)}
    return results
