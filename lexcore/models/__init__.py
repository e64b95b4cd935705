"""
SQLAlchemy Models Package
"""

from lexcore.models.client import ClientRecord

__all__ = [
    "ClientRecord",
]
