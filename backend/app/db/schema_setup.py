"""Idempotent declaration of the payment log structure.

Two steps, always in this order: the ``payments`` namespace, then the
``payments.log`` table inside it. Each step creates its object only when it is
absent and never alters an existing one, so re-running both steps after a
partial failure converges. An existing table is not compared against the
model; shape drift goes unreported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateSchema, CreateTable

from app.core.config import get_settings
from app.core.metrics import schema_setup_runs_total
from app.db.namespaces import PAYMENTS_SCHEMA, sqlite_namespace_path
from app.models.payment_log import PaymentLogEntry

logger = logging.getLogger("payments.schema")


class SchemaSetupError(RuntimeError):
    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Payment log structure setup failed at step '{step}': {message}")
        self.step = step


class NamespaceMissingError(SchemaSetupError):
    def __init__(self, namespace: str) -> None:
        super().__init__("table", f"namespace '{namespace}' does not exist")
        self.namespace = namespace


@dataclass(frozen=True)
class StructureReport:
    namespace_created: bool
    table_created: bool


def namespace_exists(connection: Connection, namespace: str = PAYMENTS_SCHEMA) -> bool:
    return namespace in inspect(connection).get_schema_names()


def payment_log_table_exists(connection: Connection) -> bool:
    table = PaymentLogEntry.__table__
    return inspect(connection).has_table(table.name, schema=table.schema)


def payment_log_structure_present(connection: Connection) -> bool:
    return namespace_exists(connection) and payment_log_table_exists(connection)


def ensure_payments_namespace(connection: Connection) -> bool:
    """Create the ``payments`` namespace if absent. Returns True when it was created."""
    try:
        if namespace_exists(connection):
            return False
        if connection.dialect.name == "sqlite":
            path = sqlite_namespace_path(connection.engine.url.database, PAYMENTS_SCHEMA)
            connection.exec_driver_sql(f'ATTACH DATABASE ? AS "{PAYMENTS_SCHEMA}"', (path,))
        else:
            connection.execute(CreateSchema(PAYMENTS_SCHEMA, if_not_exists=True))
    except SQLAlchemyError as exc:
        raise SchemaSetupError("namespace", str(exc)) from exc
    logger.info("namespace created", extra={"step": "namespace"})
    return True


def ensure_payment_log_table(connection: Connection) -> bool:
    """Create ``payments.log`` if absent. Returns True when it was created.

    The namespace must already exist; this step never creates it.
    """
    try:
        if not namespace_exists(connection):
            raise NamespaceMissingError(PAYMENTS_SCHEMA)
        if payment_log_table_exists(connection):
            return False
        connection.execute(CreateTable(PaymentLogEntry.__table__, if_not_exists=True))
    except SQLAlchemyError as exc:
        raise SchemaSetupError("table", str(exc)) from exc
    logger.info("table created", extra={"step": "table"})
    return True


def _acquire_setup_lock(connection: Connection, lock_key: int) -> None:
    if connection.dialect.name != "postgresql":
        return
    try:
        # Released when the surrounding transaction ends.
        connection.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": lock_key})
    except SQLAlchemyError as exc:
        raise SchemaSetupError("lock", str(exc)) from exc


def apply_payment_log_structure(engine: Engine, *, lock_key: int | None = None) -> StructureReport:
    """Apply namespace then table in a single transaction.

    Stores with transactional DDL roll back the namespace if the table step
    fails. Elsewhere a failure can leave the namespace behind, and running this
    again finishes the job.
    """
    resolved_key = lock_key if lock_key is not None else get_settings().schema_setup_lock_key
    try:
        with engine.begin() as connection:
            _acquire_setup_lock(connection, resolved_key)
            namespace_created = ensure_payments_namespace(connection)
            table_created = ensure_payment_log_table(connection)
    except SchemaSetupError as exc:
        schema_setup_runs_total.labels(outcome="failed").inc()
        logger.error("payment log structure setup failed", extra={"step": exc.step, "outcome": "failed"})
        raise
    except SQLAlchemyError as exc:
        schema_setup_runs_total.labels(outcome="failed").inc()
        logger.error("payment log structure setup failed", extra={"step": "connect", "outcome": "failed"})
        raise SchemaSetupError("connect", str(exc)) from exc

    report = StructureReport(namespace_created=namespace_created, table_created=table_created)
    outcome = "applied" if namespace_created or table_created else "unchanged"
    schema_setup_runs_total.labels(outcome=outcome).inc()
    logger.info("payment log structure ready", extra={"outcome": outcome})
    return report
