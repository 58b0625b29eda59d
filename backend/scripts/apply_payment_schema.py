"""Apply the payment log structure (namespace, then table) and report the outcome.

Run it from a single deployment step. Re-running after a failure is safe and
finishes whatever the previous run left undone.

On SQLite the engine attaches the namespace file as each connection opens, so
``namespace_created`` is always False there and only ``table_created`` tells a
fresh database apart.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _ensure_backend_on_path() -> None:
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply the payments namespace and payment log table.")
    parser.add_argument("--database-url", default="", help="Overrides POSTGRES_DSN from settings.")
    args = parser.parse_args(argv)

    _ensure_backend_on_path()
    from app.core.config import get_settings
    from app.core.logging_config import configure_logging
    from app.db.schema_setup import SchemaSetupError, apply_payment_log_structure
    from app.db.session import build_engine

    settings = get_settings()
    configure_logging(log_level=settings.log_level, app_env=settings.app_env)
    dsn = args.database_url.strip() or settings.postgres_dsn
    engine = build_engine(dsn, app_env=settings.app_env)
    try:
        report = apply_payment_log_structure(engine, lock_key=settings.schema_setup_lock_key)
    except SchemaSetupError as exc:
        print(f"[payment-schema] FAILED step={exc.step}: {exc}")
        return 1
    finally:
        engine.dispose()
    print(
        "[payment-schema] OK "
        f"namespace_created={report.namespace_created} table_created={report.table_created}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
