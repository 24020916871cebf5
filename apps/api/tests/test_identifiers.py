"""Tests for store/ledger identifier mapping."""

import uuid

import pytest

from certchain_api.lifecycle.identifiers import IdentifierMapper


def test_round_trip_for_issued_ids():
    mapper = IdentifierMapper()
    store_ids = [str(uuid.uuid4()) for _ in range(2000)]

    ledger_ids = [mapper.to_ledger_id(s) for s in store_ids]

    assert len(set(ledger_ids)) == len(store_ids)
    for store_id, ledger_id in zip(store_ids, ledger_ids):
        assert mapper.to_store_id(ledger_id) == store_id


def test_ledger_id_fits_declared_width():
    mapper = IdentifierMapper(ledger_id_bits=128)
    ledger_id = mapper.to_ledger_id("ffffffff-ffff-4fff-bfff-ffffffffffff")
    assert 0 <= ledger_id < 2**128


def test_mapping_is_stable():
    mapper = IdentifierMapper()
    store_id = str(uuid.uuid4())
    assert mapper.to_ledger_id(store_id) == IdentifierMapper().to_ledger_id(store_id)


def test_narrow_ledger_width_rejected():
    with pytest.raises(ValueError):
        IdentifierMapper(ledger_id_bits=64)


@pytest.mark.parametrize(
    "store_id",
    [
        "not-a-uuid",
        "{12345678-1234-5678-1234-567812345678}",
        "12345678123456781234567812345678",
        "12345678-1234-5678-1234-56781234567G",
        "ABCDEF12-1234-4678-9234-567812345678",
    ],
)
def test_non_canonical_store_ids_rejected(store_id):
    with pytest.raises(ValueError):
        IdentifierMapper().to_ledger_id(store_id)


@pytest.mark.parametrize("ledger_id", [-1, 2**128, "123", True, 1.5])
def test_invalid_ledger_ids_rejected(ledger_id):
    with pytest.raises(ValueError):
        IdentifierMapper().to_store_id(ledger_id)
