"""Database initialization utilities."""

import logging

from sqlalchemy import Engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from apex_parking.db import models  # noqa: F401 - ensure model metadata is registered
from apex_parking.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)

# Columns added after the first deployments of the reservations table.
_FOLLOW_UP_COLUMNS = {
    "expiration_reminder_sent": "expiration_reminder_sent TIMESTAMP",
    "followup_sent": "followup_sent TIMESTAMP",
    "stripe_payment_id": "stripe_payment_id VARCHAR(255)",
}


def _get_columns(engine: Engine, table_name: str) -> set[str]:
    inspector = inspect(engine)
    if table_name not in inspector.get_table_names():
        return set()
    return {column["name"] for column in inspector.get_columns(table_name)}


def _ensure_column(engine: Engine, table_name: str, column_name: str, column_ddl: str) -> None:
    if column_name in _get_columns(engine, table_name):
        return

    logger.info("Adding missing column %s.%s", table_name, column_name)
    with engine.begin() as connection:
        connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_ddl}"))


def _ensure_index(engine: Engine, table_name: str, index_name: str, columns: list[str]) -> None:
    columns_sql = ", ".join(columns)
    with engine.begin() as connection:
        connection.execute(
            text(
                f"CREATE INDEX IF NOT EXISTS {index_name} "
                f"ON {table_name} ({columns_sql})"
            )
        )


def init_db(engine: Engine | None = None) -> None:
    """Create the schema and apply additive column/index migrations."""
    bind = engine or default_engine
    try:
        Base.metadata.create_all(bind=bind)

        for column_name, column_ddl in _FOLLOW_UP_COLUMNS.items():
            _ensure_column(bind, "reservations", column_name, column_ddl)

        _ensure_index(
            bind,
            "reservations",
            "ix_reservations_payment_status",
            ["stripe_payment_id", "status"],
        )
    except SQLAlchemyError:
        logger.exception("Database initialization failed.")
        raise
