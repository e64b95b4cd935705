"""
Client Model
Store-of-record table for client records
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, Index, JSON
from lexcore.models.base import RecordBase


class ClientRecord(RecordBase):
    """Persisted client record"""
    __tablename__ = "clients"

    # Contact information
    full_name = Column(String(200), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    phone = Column(String(40), nullable=False, default="")
    company_name = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, default=list, nullable=False)

    # Assignment and linked login account
    assigned_attorney_id = Column(String(64), nullable=True, index=True)
    account_id = Column(String(64), nullable=True)

    # Drop state
    is_dropped = Column(Boolean, default=False, nullable=False, index=True)
    dropped_date = Column(DateTime(timezone=True), nullable=True)
    dropped_reason = Column(Text, nullable=True)

    # Case intake details
    case_status = Column(String(100), nullable=True)
    date_of_birth = Column(String(20), nullable=True)
    accident_date = Column(String(20), nullable=True)
    accident_location = Column(String(255), nullable=True)
    injury_type = Column(String(255), nullable=True)
    case_description = Column(Text, nullable=True)
    insurance_company = Column(String(200), nullable=True)
    insurance_policy_number = Column(String(100), nullable=True)
    insurance_adjuster_name = Column(String(200), nullable=True)

    __table_args__ = (
        Index('ix_client_dropped_created', 'is_dropped', 'created_at'),
    )

    def __repr__(self):
        return f"<ClientRecord(full_name='{self.full_name}', is_dropped={self.is_dropped})>"

    def to_dict(self) -> dict:
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }
