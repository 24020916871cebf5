"""Per-request record of ledger transaction references.

The journal is an immutable value: ``append`` returns a new journal. An entry
that holds a transaction reference is never cleared or overwritten, because
it is evidence of an irreversible ledger write.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Iterator, Optional

from certchain_api.lifecycle.errors import ConflictError

# Keys used by journals written before roles were renamed
_LEGACY_ROLE_NAMES = {"farmer": "creator", "certificate_issuer": "certifier"}


@dataclass(frozen=True)
class CreatorEntries:
    initiated: Optional[str] = None
    reverted: Optional[str] = None


@dataclass(frozen=True)
class InspectorEntries:
    in_progress: Optional[str] = None
    approved: Optional[str] = None
    rejected: Optional[str] = None


@dataclass(frozen=True)
class CertifierEntries:
    certified: Optional[str] = None


@dataclass(frozen=True)
class JournalEntry:
    """A single role/action/transaction-reference delta."""

    role: str
    action: str
    tx_ref: str


@dataclass(frozen=True)
class TransactionJournal:
    """Role -> action -> transaction reference."""

    creator: CreatorEntries = field(default_factory=CreatorEntries)
    inspector: InspectorEntries = field(default_factory=InspectorEntries)
    certifier: CertifierEntries = field(default_factory=CertifierEntries)

    def _section(self, role: str):
        if role not in {f.name for f in fields(self)}:
            raise ValueError(f"Unknown journal role: {role}")
        return getattr(self, role)

    def get(self, role: str, action: str) -> Optional[str]:
        section = self._section(role)
        if action not in {f.name for f in fields(section)}:
            raise ValueError(f"Unknown journal action for {role}: {action}")
        return getattr(section, action)

    def append(
        self, role: str, action: str, tx_ref: str, request_id: Optional[str] = None
    ) -> "TransactionJournal":
        """Return a copy with ``role.action`` set to ``tx_ref``.

        Raises:
            ConflictError: the entry already holds a transaction reference
            ValueError: unknown role/action or empty reference
        """
        if not tx_ref:
            raise ValueError("Transaction reference must be non-empty")
        existing = self.get(role, action)
        if existing is not None:
            raise ConflictError(
                f"Journal entry {role}.{action} is already recorded",
                request_id=request_id,
                action=action,
            )
        section = replace(self._section(role), **{action: tx_ref})
        return replace(self, **{role: section})

    def apply(self, entry: JournalEntry, request_id: Optional[str] = None) -> "TransactionJournal":
        return self.append(entry.role, entry.action, entry.tx_ref, request_id=request_id)

    def entries(self) -> Iterator[JournalEntry]:
        """Non-null entries."""
        for role_field in fields(self):
            section = getattr(self, role_field.name)
            for action_field in fields(section):
                tx_ref = getattr(section, action_field.name)
                if tx_ref is not None:
                    yield JournalEntry(role_field.name, action_field.name, tx_ref)

    @property
    def is_initiated(self) -> bool:
        return self.creator.initiated is not None

    def to_dict(self) -> dict:
        return {
            role_field.name: {
                action_field.name: getattr(getattr(self, role_field.name), action_field.name)
                for action_field in fields(getattr(self, role_field.name))
            }
            for role_field in fields(self)
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TransactionJournal":
        """Build from the stored JSON shape, ignoring unknown actions."""
        journal = cls()
        for role, actions in (data or {}).items():
            role = _LEGACY_ROLE_NAMES.get(role, role)
            if role not in {f.name for f in fields(cls)}:
                continue
            section = getattr(journal, role)
            known = {f.name for f in fields(section)}
            values = {k: v for k, v in (actions or {}).items() if k in known and v is not None}
            journal = replace(journal, **{role: replace(section, **values)})
        return journal
