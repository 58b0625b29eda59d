from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import NullPool

from app.db import schema_setup
from app.db.namespaces import PAYMENTS_SCHEMA, install_sqlite_namespace_hook, sqlite_namespace_path
from app.db.schema_setup import (
    NamespaceMissingError,
    SchemaSetupError,
    apply_payment_log_structure,
    ensure_payment_log_table,
    ensure_payments_namespace,
    payment_log_structure_present,
)


def _engine(db_path: Path, *, with_namespaces: bool):
    engine = create_engine(f"sqlite:///{db_path.as_posix()}", poolclass=NullPool)
    if with_namespaces:
        install_sqlite_namespace_hook(engine)
    return engine


def test_namespace_declaration_twice_leaves_one_namespace(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=False)
    try:
        with engine.begin() as connection:
            assert ensure_payments_namespace(connection) is True
            assert ensure_payments_namespace(connection) is False
            schemas = inspect(connection).get_schema_names()
        assert schemas.count(PAYMENTS_SCHEMA) == 1
        assert Path(sqlite_namespace_path(str(tmp_sqlite_path), PAYMENTS_SCHEMA)).exists()
    finally:
        engine.dispose()


def test_table_declaration_twice_leaves_one_table_with_declared_columns(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=True)
    try:
        with engine.begin() as connection:
            assert ensure_payments_namespace(connection) is False
            assert ensure_payment_log_table(connection) is True
            assert ensure_payment_log_table(connection) is False

        inspector = inspect(engine)
        assert inspector.get_table_names(schema=PAYMENTS_SCHEMA) == ["log"]
        columns = inspector.get_columns("log", schema=PAYMENTS_SCHEMA)
        assert [column["name"] for column in columns] == ["id", "amount", "requested_at", "processed_by"]
        nullable = {column["name"]: column["nullable"] for column in columns}
        assert nullable == {"id": False, "amount": False, "requested_at": False, "processed_by": True}
        assert inspector.get_pk_constraint("log", schema=PAYMENTS_SCHEMA)["constrained_columns"] == ["id"]
        assert inspector.get_foreign_keys("log", schema=PAYMENTS_SCHEMA) == []
        assert inspector.get_indexes("log", schema=PAYMENTS_SCHEMA) == []
    finally:
        engine.dispose()


def test_table_declaration_requires_namespace(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=False)
    try:
        with pytest.raises(NamespaceMissingError) as exc_info:
            with engine.begin() as connection:
                ensure_payment_log_table(connection)
        assert exc_info.value.step == "table"
        assert exc_info.value.namespace == PAYMENTS_SCHEMA
        assert isinstance(exc_info.value, SchemaSetupError)
    finally:
        engine.dispose()


def test_apply_structure_is_idempotent_and_keeps_rows(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=True)
    try:
        first = apply_payment_log_structure(engine)
        assert first.table_created is True

        with engine.begin() as connection:
            connection.execute(
                text(
                    "INSERT INTO payments.log (id, amount, requested_at) "
                    "VALUES ('0f8fad5bd9cb469fa16570867728950e', 12.5, '2026-10-19 10:00:00.000000')"
                )
            )

        second = apply_payment_log_structure(engine)
        assert second.namespace_created is False
        assert second.table_created is False
        with engine.connect() as connection:
            assert payment_log_structure_present(connection) is True
            count = connection.execute(text("SELECT COUNT(*) FROM payments.log")).scalar_one()
        assert count == 1
    finally:
        engine.dispose()


def test_existing_table_with_other_shape_is_left_untouched(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=True)
    try:
        with engine.begin() as connection:
            connection.execute(text("CREATE TABLE payments.log (id TEXT PRIMARY KEY, note TEXT)"))

        report = apply_payment_log_structure(engine)

        assert report.table_created is False
        columns = [column["name"] for column in inspect(engine).get_columns("log", schema=PAYMENTS_SCHEMA)]
        assert columns == ["id", "note"]
    finally:
        engine.dispose()


def test_apply_structure_surfaces_unreachable_store(tmp_path: Path) -> None:
    engine = _engine(tmp_path / "missing-dir" / "payments.sqlite3", with_namespaces=True)
    try:
        with pytest.raises(SchemaSetupError) as exc_info:
            apply_payment_log_structure(engine)
        assert exc_info.value.step == "connect"
        assert exc_info.value.__cause__ is not None
    finally:
        engine.dispose()


def test_structure_absent_on_fresh_database(tmp_sqlite_path: Path) -> None:
    engine = _engine(tmp_sqlite_path, with_namespaces=True)
    try:
        with engine.connect() as connection:
            assert payment_log_structure_present(connection) is False
    finally:
        engine.dispose()


def test_setup_lock_only_taken_on_postgresql() -> None:
    calls: list[tuple[str, dict]] = []

    def _execute(statement, params):
        calls.append((str(statement), params))

    pg_connection = SimpleNamespace(dialect=SimpleNamespace(name="postgresql"), execute=_execute)
    sqlite_connection = SimpleNamespace(dialect=SimpleNamespace(name="sqlite"), execute=_execute)

    schema_setup._acquire_setup_lock(sqlite_connection, 42)
    assert calls == []

    schema_setup._acquire_setup_lock(pg_connection, 42)
    assert calls == [("SELECT pg_advisory_xact_lock(:key)", {"key": 42})]
