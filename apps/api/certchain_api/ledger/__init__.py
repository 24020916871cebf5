"""Ledger (smart-contract transaction log) clients."""

from certchain_api.ledger.client import LedgerClient, LedgerError, LedgerReceipt, get_ledger_client

__all__ = ["LedgerClient", "LedgerError", "LedgerReceipt", "get_ledger_client"]
