"""
Unit tests for core data models.
"""

import pytest
from pydantic import ValidationError

from obelysk_privacy.core.models import (
    CoordinatorProof,
    DepositEvent,
    MerkleProofResult,
    PoolStats,
    PrivacyNote,
)


def _note(**overrides):
    data = {
        "denomination": 1,
        "commitment": "0xabc",
        "nullifierSecret": "0x1",
        "blinding": "0x2",
        "leafIndex": 3,
        "depositTxHash": "0xdead",
        "createdAt": 1700000000,
    }
    data.update(overrides)
    return PrivacyNote.model_validate(data)


def test_note_from_stored_json():
    note = _note()
    assert note.leaf_index == 3
    assert note.spent is False
    assert note.token_symbol is None


def test_note_is_immutable():
    note = _note()
    with pytest.raises(ValidationError):
        note.spent = True


def test_mark_spent_returns_copy():
    note = _note()
    spent = note.mark_spent("0xbeef")
    assert spent.spent is True
    assert spent.spent_tx_hash == "0xbeef"
    assert note.spent is False


def test_note_dumps_camel_case():
    data = _note().model_dump(by_alias=True)
    assert data["nullifierSecret"] == "0x1"
    assert data["leafIndex"] == 3


def test_note_rejects_negative_index():
    with pytest.raises(ValidationError):
        _note(leafIndex=-1)


def test_pool_stats_decodes_u256():
    stats = PoolStats.from_felts([7, 2, 5, 1, 3, 0])
    assert stats.total_deposits == 7
    assert stats.total_withdrawals == 2
    assert stats.total_volume_deposited == 5 + (1 << 128)
    assert stats.total_volume_withdrawn == 3


def test_pool_stats_short_result():
    with pytest.raises(ValueError):
        PoolStats.from_felts([1, 2])


def test_deposit_event_commitment():
    event = DepositEvent(block_number=1, keys=["0xsel", "0xc0ffee"])
    assert event.commitment == "0xc0ffee"
    assert DepositEvent(keys=["0xsel"]).commitment is None


def test_coordinator_effective_root():
    assert CoordinatorProof(found=True, root="0x1").effective_root == "0x1"
    assert CoordinatorProof(found=True, root="0x1", current_root="0x2").effective_root == "0x2"


def test_proof_result_to_dict():
    result = MerkleProofResult(
        siblings=["0x1"], path_indices=[0], root="0x2", leaf_index=0, source="local", tree_size=2
    )
    data = result.to_dict()
    assert data["source"] == "local"
    assert data["root_matches_chain"] is None


def test_proof_result_rejects_unknown_source():
    with pytest.raises(ValidationError):
        MerkleProofResult(siblings=[], path_indices=[], root="0x0", leaf_index=0, source="cache")
