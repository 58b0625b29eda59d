from decimal import Decimal

from sqlalchemy import Numeric, Text
from sqlalchemy.types import TypeDecorator


class DecimalText(TypeDecorator):
    """Exact decimal stored as its string form, for stores without a native NUMERIC."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


# NUMERIC everywhere except SQLite, whose driver round-trips through float.
ExactDecimal = Numeric().with_variant(DecimalText(), "sqlite")
