from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.db.schema_setup import payment_log_structure_present
from app.db.session import SessionLocal


def db_connected() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
    finally:
        db.close()


def payment_log_structure_ready() -> bool:
    db = SessionLocal()
    try:
        return payment_log_structure_present(db.connection())
    except SQLAlchemyError:
        return False
    finally:
        db.close()
