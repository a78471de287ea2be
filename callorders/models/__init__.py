"""
Database models - import all models here so Alembic can discover them.
"""
from callorders.models.call import Call
from callorders.models.order import Order

__all__ = [
    "Call",
    "Order",
]
