"""Mapping between store request ids and ledger request ids.

Store ids are UUID strings issued by the request store. The ledger id is the
UUID's 128-bit integer value, so the mapping is a bijection computed locally:
no lookup table, no collisions, stable for the life of the request. The
contract's declared integer width must hold 128 bits.
"""

import uuid

UUID_BITS = 128


class IdentifierMapper:
    """Convert between store and ledger request identifiers."""

    def __init__(self, ledger_id_bits: int = 256):
        if ledger_id_bits < UUID_BITS:
            raise ValueError(
                f"Ledger request ids must be at least {UUID_BITS} bits wide, got {ledger_id_bits}"
            )
        self.ledger_id_bits = ledger_id_bits

    def to_ledger_id(self, store_id: str) -> int:
        """Store id -> ledger id.

        Raises:
            ValueError: ``store_id`` is not a store-issued identifier
        """
        try:
            value = uuid.UUID(str(store_id))
        except ValueError as e:
            raise ValueError(f"Not a store request id: {store_id!r}") from e
        if str(value) != store_id:
            # Braced, urn, hex and upper-case forms would map several strings to one ledger id
            raise ValueError(f"Store request id must be canonical: {store_id!r}")
        return value.int

    def to_store_id(self, ledger_id: int) -> str:
        """Ledger id -> store id.

        Raises:
            ValueError: ``ledger_id`` is outside the image of ``to_ledger_id``
        """
        if isinstance(ledger_id, bool) or not isinstance(ledger_id, int):
            raise ValueError(f"Ledger request id must be an integer: {ledger_id!r}")
        if ledger_id < 0 or ledger_id >= 1 << UUID_BITS:
            raise ValueError(f"Ledger request id out of range: {ledger_id}")
        return str(uuid.UUID(int=ledger_id))
