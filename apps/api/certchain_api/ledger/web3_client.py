"""Ledger client for the certification smart contract over JSON-RPC."""

import asyncio
import logging
from typing import Optional

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from certchain_api.ledger.abi import CERTIFICATION_ABI
from certchain_api.ledger.client import LedgerClient, LedgerError, LedgerReceipt

logger = logging.getLogger(__name__)


class Web3LedgerClient(LedgerClient):
    """Signs contract calls locally and waits for their receipts.

    Nonces are allocated under a lock so concurrent calls from this process
    never reuse one; after a failed broadcast the next call re-reads the
    pending nonce from the node.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        chain_id: int,
        confirmation_timeout_seconds: int = 300,
    ):
        """Initialize client."""
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.account = self.w3.eth.account.from_key(private_key)
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=CERTIFICATION_ABI,
        )
        self.chain_id = chain_id
        self.confirmation_timeout_seconds = confirmation_timeout_seconds
        self._nonce_lock = asyncio.Lock()
        self._next_nonce: Optional[int] = None

    async def _broadcast(self, function) -> bytes:
        async with self._nonce_lock:
            if self._next_nonce is None:
                self._next_nonce = await self.w3.eth.get_transaction_count(
                    self.account.address, "pending"
                )
            tx = await function.build_transaction(
                {
                    "from": self.account.address,
                    "nonce": self._next_nonce,
                    "chainId": self.chain_id,
                }
            )
            signed = self.account.sign_transaction(tx)
            try:
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            except BaseException:
                # Includes cancellation: the node may or may not hold this nonce now
                self._next_nonce = None
                raise
            self._next_nonce += 1
            return tx_hash

    async def _send(self, fn_name: str, *args) -> LedgerReceipt:
        tx_ref = None
        try:
            tx_hash = await self._broadcast(getattr(self.contract.functions, fn_name)(*args))
            tx_ref = Web3.to_hex(tx_hash)
            logger.info(f"Ledger transaction sent: {fn_name}", extra={"tx_ref": tx_ref})

            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout_seconds
            )
        except ContractLogicError as e:
            raise LedgerError(f"{fn_name} rejected by contract: {e}", tx_ref=tx_ref) from e
        except TimeExhausted as e:
            raise LedgerError(
                f"{fn_name} not confirmed within {self.confirmation_timeout_seconds}s",
                tx_ref=tx_ref,
            ) from e
        except Exception as e:
            raise LedgerError(f"{fn_name} failed: {e}", tx_ref=tx_ref) from e

        if receipt["status"] != 1:
            raise LedgerError(f"{fn_name} reverted in block {receipt['blockNumber']}", tx_ref=tx_ref)

        return LedgerReceipt(
            tx_ref=tx_ref,
            block_hash=Web3.to_hex(receipt["blockHash"]),
            block_number=receipt["blockNumber"],
        )

    async def create(self, ledger_id, name, description, media_hashes):
        return await self._send("createRequest", ledger_id, name, description, list(media_hashes))

    async def mark_in_progress(self, ledger_id):
        return await self._send("markInProgress", ledger_id)

    async def approve(self, ledger_id):
        return await self._send("approveRequest", ledger_id)

    async def reject(self, ledger_id):
        return await self._send("rejectRequest", ledger_id)

    async def certify(self, ledger_id):
        return await self._send("issueCertificate", ledger_id)

    async def revert(self, ledger_id):
        return await self._send("revertRequest", ledger_id)

    async def close(self) -> None:
        await self.w3.provider.disconnect()
