from app.models.payment_log import PaymentLogEntry

__all__ = [
    'PaymentLogEntry',
]
