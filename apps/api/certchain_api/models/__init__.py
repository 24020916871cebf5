"""Database models - import all models here for metadata discovery."""

from certchain_api.models.actor import Actor
from certchain_api.models.reconciliation import ReconciliationIncident
from certchain_api.models.request import CertificationRequest, CheckpointAnswer, Media

__all__ = [
    "Actor",
    "CertificationRequest",
    "Media",
    "CheckpointAnswer",
    "ReconciliationIncident",
]
