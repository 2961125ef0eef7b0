"""
Unit tests for obelysk_privacy.crypto.nullifier — double-spend tags and view tags.
"""

import pytest

from obelysk_privacy.core.errors import ValidationError
from obelysk_privacy.crypto.ae_hints import derive_shared_secret
from obelysk_privacy.crypto.constants import STEALTH_NULLIFIER_DOMAIN, WITHDRAWAL_NULLIFIER_DOMAIN
from obelysk_privacy.crypto.curve import G, generate_key_pair, scalar_mult
from obelysk_privacy.crypto.nullifier import (
    NullifierWitness,
    compute_view_tag,
    create_nullifier_witness,
    derive_nullifier,
    derive_nullifier_batch,
    derive_nullifier_with_domain,
    derive_stealth_nullifier,
    derive_view_tag,
    derive_withdrawal_nullifier,
    felt_to_nullifier,
    generate_nullifier_secret,
    is_nullifier_spent,
    match_view_tag,
    nullifier_to_felt,
    verify_nullifier_derivation,
)
from obelysk_privacy.crypto.poseidon import poseidon, string_to_felt


class TestDerivation:

    def test_definition(self):
        assert derive_nullifier(123, 4) == poseidon(123, 4)

    def test_deterministic(self):
        s = generate_nullifier_secret()
        assert derive_nullifier(s, 7) == derive_nullifier(s, 7)

    def test_position_binding(self):
        s = generate_nullifier_secret()
        assert derive_nullifier(s, 0) != derive_nullifier(s, 1)

    def test_secret_binding(self):
        assert derive_nullifier(1, 0) != derive_nullifier(2, 0)

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationError):
            derive_nullifier(1, -1)

    def test_domain_separation(self):
        s = generate_nullifier_secret()
        plain = derive_nullifier(s, 3)
        withdrawal = derive_withdrawal_nullifier(s, 3)
        assert withdrawal != plain
        assert withdrawal == poseidon(string_to_felt(WITHDRAWAL_NULLIFIER_DOMAIN), s, 3)
        assert derive_nullifier_with_domain(s, 3, "OTHER") != withdrawal

    def test_stealth_nullifier(self):
        eph = scalar_mult(5, G)
        expected = poseidon(string_to_felt(STEALTH_NULLIFIER_DOMAIN), 1, 2, eph.x, eph.y)
        assert derive_stealth_nullifier(1, 2, eph) == expected

    def test_batch(self):
        assert derive_nullifier_batch([1, 2], [0, 5]) == [derive_nullifier(1, 0), derive_nullifier(2, 5)]

    def test_batch_length_mismatch(self):
        with pytest.raises(ValidationError, match="same length"):
            derive_nullifier_batch([1, 2], [0])


class TestWitness:

    def test_valid_witness(self):
        witness = create_nullifier_witness(generate_nullifier_secret(), 9)
        assert verify_nullifier_derivation(witness)

    def test_forged_witness(self):
        witness = create_nullifier_witness(11, 9)
        forged = NullifierWitness(nullifier_secret=11, leaf_index=10, nullifier=witness.nullifier)
        assert not verify_nullifier_derivation(forged)

    def test_negative_index_witness(self):
        assert not verify_nullifier_derivation(NullifierWitness(1, -1, 0))


class TestViewTags:

    def test_tag_is_16_bits(self):
        tag = derive_view_tag(123456789, 0)
        assert 0 <= tag <= 0xFFFF
        assert tag == poseidon(123456789, 0) & 0xFFFF

    def test_sender_and_scanner_agree(self):
        view = generate_key_pair()
        eph = generate_key_pair()
        tag = compute_view_tag(eph.private_key, view.public_key, 2)
        assert match_view_tag(view.private_key, eph.public_key, 2, tag)

    def test_tag_matches_shared_secret(self):
        view = generate_key_pair()
        eph = generate_key_pair()
        shared = derive_shared_secret(view.private_key, eph.public_key)
        assert compute_view_tag(eph.private_key, view.public_key, 0) == derive_view_tag(shared, 0)

    def test_wrong_tag_does_not_match(self):
        view = generate_key_pair()
        eph = generate_key_pair()
        tag = compute_view_tag(eph.private_key, view.public_key, 0)
        assert not match_view_tag(view.private_key, eph.public_key, 0, (tag + 1) & 0xFFFF)


class TestChainHelpers:

    async def test_is_nullifier_spent(self):
        seen = []

        async def contract_read(felt):
            seen.append(felt)
            return True

        assert await is_nullifier_spent(255, contract_read)
        assert seen == ["0xff"]

    def test_felt_roundtrip(self):
        n = derive_nullifier(1, 2)
        assert felt_to_nullifier(nullifier_to_felt(n)) == n
