"""Store/ledger divergence records."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from certchain_api.db.base import Base


class ReconciliationIncident(Base):
    """A confirmed ledger action the request store failed to record.

    Rows are written for manual reconciliation; nothing retries them.
    """

    __tablename__ = "reconciliation_incidents"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(36), nullable=False, index=True)  # no FK, request may be gone
    ledger_request_id = Column(String(80), nullable=True)
    action = Column(String(50), nullable=False)
    tx_ref = Column(String(255), nullable=False)
    error = Column(Text, nullable=False)
    correlation_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
