import os
os.environ["APP_ENV"] = "test"
if os.getenv("DATABASE_URL"):
    os.environ["POSTGRES_DSN"] = os.environ["DATABASE_URL"]

# THEN import anything else
import shutil
import tempfile
import time
import uuid
from typing import Generator
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

import app.db.session as db_session_module
from app.db.namespaces import PAYMENTS_SCHEMA, install_sqlite_namespace_hook, sqlite_namespace_path
from app.db.session import get_db


BACKEND_DIR = Path(__file__).resolve().parents[1]


def make_alembic_config(database_url: str) -> Config:
    cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.attributes["connection_url"] = database_url
    cfg.attributes["configure_logger"] = False
    return cfg


def make_sqlite_engine(db_path: Path, *, with_namespaces: bool = True) -> Engine:
    engine = create_engine(
        f"sqlite:///{db_path.as_posix()}",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=NullPool,
    )
    if with_namespaces:
        install_sqlite_namespace_hook(engine)
    return engine


def copy_sqlite_database(source: Path, target: Path) -> None:
    shutil.copy2(source, target)
    source_namespace = Path(sqlite_namespace_path(str(source), PAYMENTS_SCHEMA))
    if source_namespace.exists():
        shutil.copy2(source_namespace, Path(sqlite_namespace_path(str(target), PAYMENTS_SCHEMA)))


def _run_alembic_upgrade(database_url: str) -> None:
    os.environ["DATABASE_URL"] = database_url
    os.environ["POSTGRES_DSN"] = database_url
    command.upgrade(make_alembic_config(database_url), "head")


def pytest_configure(config: pytest.Config) -> None:
    workers = getattr(config.option, "numprocesses", None)
    if workers and int(workers) > 1:
        pytest.exit("SQLite test path does not support pytest-xdist parallel workers.")


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> Generator[Path, None, None]:
    temp_dir = Path(tempfile.mkdtemp(prefix="pytest-db-"))
    template_db_path = temp_dir / f"template-{uuid.uuid4().hex}.sqlite3"
    database_url = f"sqlite:///{template_db_path.as_posix()}"

    from app.core.config import get_settings

    get_settings.cache_clear()
    print(f"[tests] DATABASE_URL={database_url}")
    db_session_module.reset_engine_state()
    _run_alembic_upgrade(database_url)
    # Keep the SQLite fast-lane aligned with migration head by asserting the log table exists.
    verification_engine = make_sqlite_engine(template_db_path)
    try:
        has_log_table = inspect(verification_engine).has_table("log", schema=PAYMENTS_SCHEMA)
    finally:
        verification_engine.dispose()
    if not has_log_table:
        raise RuntimeError("Alembic migration parity check failed; missing table: payments.log")
    yield template_db_path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture()
def tmp_sqlite_path(tmp_path: Path) -> Path:
    return tmp_path / f"{uuid.uuid4().hex}.sqlite3"


@pytest.fixture()
def db_engine(apply_migrations: Path) -> Generator[Engine, None, None]:
    test_db_path = apply_migrations.parent / f"{uuid.uuid4().hex}.sqlite3"
    copy_sqlite_database(apply_migrations, test_db_path)
    engine = make_sqlite_engine(test_db_path)
    yield engine
    engine.dispose()
    for path in (test_db_path, Path(sqlite_namespace_path(str(test_db_path), PAYMENTS_SCHEMA))):
        for _ in range(5):
            try:
                path.unlink(missing_ok=True)
                break
            except PermissionError:
                time.sleep(0.05)


@pytest.fixture()
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    test_session_local = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    test_session = test_session_local()
    db_session_module.bind_session_factory_for_tests(test_session_local)
    yield test_session
    test_session.close()
    db_session_module.reset_engine_state()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
