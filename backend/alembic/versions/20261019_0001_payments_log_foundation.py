"""payments namespace and payment log table

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import context
from alembic import op
import sqlalchemy as sa
from sqlalchemy.schema import CreateSchema, CreateTable, DropSchema

from app.db.namespaces import PAYMENTS_SCHEMA
from app.db.schema_setup import ensure_payment_log_table, ensure_payments_namespace
from app.models.payment_log import PaymentLogEntry


revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    if context.is_offline_mode():
        op.execute(CreateSchema(PAYMENTS_SCHEMA, if_not_exists=True))
        op.execute(CreateTable(PaymentLogEntry.__table__, if_not_exists=True))
        return

    bind = op.get_bind()
    ensure_payments_namespace(bind)
    ensure_payment_log_table(bind)


def downgrade() -> None:
    table = PaymentLogEntry.__table__
    if context.is_offline_mode():
        op.drop_table(table.name, schema=table.schema)
        op.execute(DropSchema(PAYMENTS_SCHEMA, if_exists=True))
        return

    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if PAYMENTS_SCHEMA not in inspector.get_schema_names():
        return
    if inspector.has_table(table.name, schema=table.schema):
        op.drop_table(table.name, schema=table.schema)
    # SQLite namespaces are attached files; they stay attached for the connection.
    if bind.dialect.name != "sqlite" and not sa.inspect(bind).get_table_names(schema=PAYMENTS_SCHEMA):
        op.execute(DropSchema(PAYMENTS_SCHEMA, if_exists=True))
