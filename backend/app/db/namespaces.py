"""Namespace constants and the SQLite stand-in for schemas.

PostgreSQL scopes ``payments.log`` with a real schema. SQLite has no schemas,
only attached databases, so the local and test lane backs each namespace with
its own file next to the main database and attaches it under the namespace
name. Attachments are per connection, which is why engines install a connect
hook instead of attaching once.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine

PAYMENTS_SCHEMA = "payments"


def sqlite_namespace_path(database: str | None, namespace: str) -> str:
    if not database or database == ":memory:":
        return ":memory:"
    main = Path(database)
    return str(main.with_name(f"{main.stem}.{namespace}{main.suffix or '.sqlite3'}"))


def attach_sqlite_namespace(dbapi_connection, database: str | None, namespace: str) -> bool:
    cursor = dbapi_connection.cursor()
    try:
        attached = {row[1] for row in cursor.execute("PRAGMA database_list").fetchall()}
        if namespace in attached:
            return False
        cursor.execute(
            f'ATTACH DATABASE ? AS "{namespace}"',
            (sqlite_namespace_path(database, namespace),),
        )
        return True
    finally:
        cursor.close()


def install_sqlite_namespace_hook(engine: Engine, namespaces: Iterable[str] = (PAYMENTS_SCHEMA,)) -> None:
    if engine.dialect.name != "sqlite":
        return
    database = engine.url.database
    names = tuple(namespaces)

    @event.listens_for(engine, "connect")
    def _attach_namespaces(dbapi_connection, _connection_record) -> None:
        for namespace in names:
            attach_sqlite_namespace(dbapi_connection, database, namespace)
