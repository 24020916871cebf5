"""In-process ledger for development and tests."""

import asyncio
import hashlib
import logging
from itertools import count
from typing import Optional

from certchain_api.ledger.client import LedgerClient, LedgerError, LedgerReceipt

logger = logging.getLogger(__name__)


class DevLocalLedgerClient(LedgerClient):
    """Keeps contract state in memory and enforces the contract's rules.

    State changes apply at confirmation time, after the simulated delay.
    """

    def __init__(self, confirmation_delay_seconds: float = 0.0):
        self.confirmation_delay_seconds = confirmation_delay_seconds
        self.requests: dict[int, dict] = {}
        self.transactions: list[dict] = []
        self._blocks = count(1)

    def status_of(self, ledger_id: int) -> Optional[str]:
        request = self.requests.get(ledger_id)
        return request["status"] if request else None

    async def _confirm(self, method: str, ledger_id: int, allowed: Optional[set], new_status: str, **data):
        await asyncio.sleep(self.confirmation_delay_seconds)

        current = self.status_of(ledger_id)
        if allowed is None:
            if current is not None:
                raise LedgerError(f"{method}: request {ledger_id} already exists")
        elif current is None:
            raise LedgerError(f"{method}: request {ledger_id} does not exist")
        elif current not in allowed:
            raise LedgerError(f"{method}: request {ledger_id} is {current}")

        block_number = next(self._blocks)
        tx_ref = "0x" + hashlib.sha256(f"{block_number}:{method}:{ledger_id}".encode()).hexdigest()
        block_hash = "0x" + hashlib.sha256(f"block:{block_number}".encode()).hexdigest()

        record = self.requests.setdefault(ledger_id, {})
        record.update(data)
        record["status"] = new_status
        self.transactions.append(
            {"tx_ref": tx_ref, "method": method, "ledger_id": ledger_id, "block_number": block_number}
        )
        logger.debug(f"Dev ledger confirmed {method} for {ledger_id} in block {block_number}")
        return LedgerReceipt(tx_ref=tx_ref, block_hash=block_hash, block_number=block_number)

    async def create(self, ledger_id, name, description, media_hashes):
        return await self._confirm(
            "createRequest",
            ledger_id,
            None,
            "pending",
            product_name=name,
            description=description,
            media_hashes=list(media_hashes),
        )

    async def mark_in_progress(self, ledger_id):
        return await self._confirm("markInProgress", ledger_id, {"pending"}, "in_progress")

    async def approve(self, ledger_id):
        return await self._confirm("approveRequest", ledger_id, {"pending", "in_progress"}, "approved")

    async def reject(self, ledger_id):
        return await self._confirm("rejectRequest", ledger_id, {"pending", "in_progress"}, "rejected")

    async def certify(self, ledger_id):
        return await self._confirm("issueCertificate", ledger_id, {"approved"}, "certified")

    async def revert(self, ledger_id):
        return await self._confirm(
            "revertRequest",
            ledger_id,
            {"pending", "in_progress", "approved", "rejected"},
            "reverted",
        )
