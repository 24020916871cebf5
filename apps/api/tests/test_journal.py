"""Tests for the transaction journal."""

import pytest

from certchain_api.lifecycle.errors import ConflictError
from certchain_api.lifecycle.journal import JournalEntry, TransactionJournal


def test_empty_journal_shape():
    assert TransactionJournal().to_dict() == {
        "creator": {"initiated": None, "reverted": None},
        "inspector": {"in_progress": None, "approved": None, "rejected": None},
        "certifier": {"certified": None},
    }


def test_append_returns_new_value():
    journal = TransactionJournal()
    updated = journal.append("creator", "initiated", "0xabc")

    assert updated.creator.initiated == "0xabc"
    assert journal.creator.initiated is None
    assert updated.is_initiated
    assert not journal.is_initiated


def test_append_never_overwrites():
    """A recorded transaction reference is permanent."""
    journal = TransactionJournal().append("inspector", "approved", "0x1")

    with pytest.raises(ConflictError) as exc_info:
        journal.append("inspector", "approved", "0x2", request_id="r-9")
    assert exc_info.value.request_id == "r-9"
    assert journal.inspector.approved == "0x1"


@pytest.mark.parametrize(
    "role,action",
    [("auditor", "approved"), ("inspector", "certified"), ("creator", "initiated_twice")],
)
def test_unknown_role_or_action_rejected(role, action):
    with pytest.raises(ValueError):
        TransactionJournal().append(role, action, "0x1")


def test_empty_reference_rejected():
    with pytest.raises(ValueError):
        TransactionJournal().append("creator", "initiated", "")


def test_entries_lists_non_null_only():
    journal = (
        TransactionJournal()
        .apply(JournalEntry("creator", "initiated", "0x1"))
        .apply(JournalEntry("inspector", "approved", "0x2"))
    )
    assert list(journal.entries()) == [
        JournalEntry("creator", "initiated", "0x1"),
        JournalEntry("inspector", "approved", "0x2"),
    ]


def test_from_dict_reads_stored_and_legacy_shapes():
    """Older rows used farmer/certificate_issuer as role keys."""
    journal = TransactionJournal.from_dict(
        {
            "farmer": {"initiated": "0x1", "reverted": None},
            "inspector": {"in_progress": "0x2", "approved": None, "rejected": None},
            "certificate_issuer": {"certified": "0x3"},
            "unknown_role": {"x": "y"},
        }
    )
    assert journal.creator.initiated == "0x1"
    assert journal.inspector.in_progress == "0x2"
    assert journal.certifier.certified == "0x3"


def test_from_dict_tolerates_missing_data():
    assert TransactionJournal.from_dict(None) == TransactionJournal()
    assert TransactionJournal.from_dict({"creator": None}) == TransactionJournal()
