"""Ledger client interface (contract-backed transaction log)."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from certchain_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """A ledger call did not produce a confirmed transaction."""

    def __init__(self, message: str, tx_ref: Optional[str] = None):
        super().__init__(message)
        self.tx_ref = tx_ref  # set when a transaction was broadcast but not confirmed


@dataclass(frozen=True)
class LedgerReceipt:
    """A confirmed ledger transaction."""

    tx_ref: str
    block_hash: Optional[str] = None
    block_number: Optional[int] = None


class LedgerClient(ABC):
    """Submits certification transactions and waits for confirmation.

    Each method returns only once the transaction is confirmed, or raises
    ``LedgerError``. None are idempotent; nonce management is the
    implementation's concern. Cancelling the awaiting task abandons the wait.
    """

    @abstractmethod
    async def create(
        self, ledger_id: int, name: str, description: str, media_hashes: list[str]
    ) -> LedgerReceipt:
        pass

    @abstractmethod
    async def mark_in_progress(self, ledger_id: int) -> LedgerReceipt:
        pass

    @abstractmethod
    async def approve(self, ledger_id: int) -> LedgerReceipt:
        pass

    @abstractmethod
    async def reject(self, ledger_id: int) -> LedgerReceipt:
        pass

    @abstractmethod
    async def certify(self, ledger_id: int) -> LedgerReceipt:
        pass

    @abstractmethod
    async def revert(self, ledger_id: int) -> LedgerReceipt:
        pass

    async def close(self) -> None:
        """Release connections."""


def get_ledger_client(settings: Optional[Settings] = None) -> LedgerClient:
    """Build the configured ledger client."""
    settings = settings or get_settings()
    provider = settings.ledger_provider.lower()

    if provider == "local":
        from certchain_api.ledger.dev import DevLocalLedgerClient

        logger.warning("Using in-process development ledger")
        return DevLocalLedgerClient(
            confirmation_delay_seconds=settings.ledger_local_confirmation_delay_seconds
        )
    if provider == "web3":
        from certchain_api.ledger.web3_client import Web3LedgerClient

        if not settings.ledger_contract_address or not settings.ledger_private_key:
            raise ValueError("LEDGER_CONTRACT_ADDRESS and LEDGER_PRIVATE_KEY required for web3 ledger")
        return Web3LedgerClient(
            rpc_url=settings.ledger_rpc_url,
            contract_address=settings.ledger_contract_address,
            private_key=settings.ledger_private_key,
            chain_id=settings.ledger_chain_id,
            confirmation_timeout_seconds=settings.ledger_confirmation_timeout_seconds,
        )
    raise ValueError(f"Unknown ledger provider: {settings.ledger_provider}")
