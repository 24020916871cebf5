"""Out-of-band handling of store/ledger divergence."""

import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from certchain_api.lifecycle.errors import ReconciliationError
from certchain_api.models import ReconciliationIncident
from certchain_api.settings import Settings, get_settings
from certchain_api.utils.metrics import reconciliation_incidents

logger = logging.getLogger(__name__)


class ReconciliationAlerter:
    """Records and announces ledger writes the store could not reflect.

    Every step is best effort: a failure here is logged and never replaces
    the ``ReconciliationError`` the caller is about to see.
    """

    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        """Initialize alerter."""
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def report(
        self,
        error: ReconciliationError,
        ledger_request_id: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> Optional[int]:
        """Log, count, persist and post an incident. Returns the incident id if stored."""
        incident = {
            "request_id": error.request_id,
            "ledger_request_id": str(ledger_request_id) if ledger_request_id is not None else None,
            "action": error.action,
            "tx_ref": error.tx_ref,
            "error": repr(error.cause) if error.cause else error.message,
            "correlation_id": correlation_id,
        }
        logger.critical(f"Manual reconciliation required: {error.message}", extra=incident)
        reconciliation_incidents.labels(action=error.action or "unknown").inc()

        incident_id = self._persist(incident)
        await self._post(incident, incident_id)
        return incident_id

    def _persist(self, incident: dict) -> Optional[int]:
        try:
            with self.session_factory() as db:
                row = ReconciliationIncident(**incident)
                db.add(row)
                db.commit()
                return row.id
        except Exception as e:
            logger.error(f"Failed to persist reconciliation incident: {e}", extra=incident)
            return None

    async def _post(self, incident: dict, incident_id: Optional[int]) -> None:
        url = self.settings.reconciliation_alert_url
        if not url:
            return
        payload = {
            "event": "reconciliation.required",
            "incident_id": incident_id,
            "timestamp": datetime.utcnow().isoformat(),
            **incident,
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.reconciliation_alert_timeout_seconds) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except Exception as e:
            # Includes InvalidURL and encoding errors, which are not HTTPError
            logger.error(f"Failed to post reconciliation alert: {e}", extra=incident)

    def list_open(self) -> list[ReconciliationIncident]:
        with self.session_factory() as db:
            return (
                db.query(ReconciliationIncident)
                .filter(ReconciliationIncident.resolved_at.is_(None))
                .order_by(ReconciliationIncident.created_at.asc())
                .all()
            )

    def resolve(self, incident_id: int) -> bool:
        with self.session_factory() as db:
            row = db.query(ReconciliationIncident).filter(ReconciliationIncident.id == incident_id).first()
            if row is None:
                return False
            row.resolved_at = datetime.utcnow()
            db.commit()
            return True
