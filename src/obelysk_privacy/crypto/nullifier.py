"""
Nullifier derivation for double-spend prevention.

    nullifier = Poseidon(nullifier_secret, leaf_index)

Binding to both the secret and the tree position means the nullifier cannot
be predicted before the deposit is included, the same secret at two positions
gives two different nullifiers, and the published value reveals nothing about
the secret (Poseidon preimage resistance).

Domain-separated variants keep withdrawal and stealth-payment nullifiers
uncorrelated. View tags are a cheap, probabilistic scan filter and not a
security boundary.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from obelysk_privacy.core.errors import ValidationError
from obelysk_privacy.crypto.ae_hints import derive_shared_secret
from obelysk_privacy.crypto.constants import (
    STEALTH_NULLIFIER_DOMAIN,
    VIEW_TAG_MASK,
    WITHDRAWAL_NULLIFIER_DOMAIN,
)
from obelysk_privacy.crypto.curve import AffinePoint, parse_felt, random_scalar, to_felt_hex
from obelysk_privacy.crypto.poseidon import poseidon, string_to_felt


def generate_nullifier_secret() -> int:
    return random_scalar()


def _check_index(leaf_index: int) -> None:
    if leaf_index < 0:
        raise ValidationError(f"leaf_index must be non-negative, got {leaf_index}")


def derive_nullifier(nullifier_secret: int, leaf_index: int) -> int:
    """
    Nullifier = Poseidon(nullifier_secret, leaf_index).

    Raises:
        ValidationError: If leaf_index is negative.
    """
    _check_index(leaf_index)
    return poseidon(nullifier_secret, leaf_index)


def derive_nullifier_with_domain(nullifier_secret: int, leaf_index: int, domain: str) -> int:
    """Nullifier = Poseidon(felt(domain), nullifier_secret, leaf_index)."""
    _check_index(leaf_index)
    return poseidon(string_to_felt(domain), nullifier_secret, leaf_index)


def derive_withdrawal_nullifier(nullifier_secret: int, leaf_index: int) -> int:
    return derive_nullifier_with_domain(nullifier_secret, leaf_index, WITHDRAWAL_NULLIFIER_DOMAIN)


def derive_stealth_nullifier(view_key: int, spend_key: int, ephemeral_public_key: AffinePoint) -> int:
    """Nullifier for a stealth payment output, scoped by its ephemeral key."""
    return poseidon(
        string_to_felt(STEALTH_NULLIFIER_DOMAIN),
        view_key,
        spend_key,
        ephemeral_public_key.x,
        ephemeral_public_key.y,
    )


def derive_nullifier_batch(secrets: Sequence[int], indices: Sequence[int]) -> list[int]:
    if len(secrets) != len(indices):
        raise ValidationError(
            f"Secrets and indices must have same length ({len(secrets)} != {len(indices)})"
        )
    return [derive_nullifier(secret, index) for secret, index in zip(secrets, indices)]


# ==============================================================================
# Witness
# ==============================================================================


@dataclass(frozen=True)
class NullifierWitness:
    """Private inputs proving "I know s such that H(s, idx) = nullifier"."""
    nullifier_secret: int
    leaf_index: int
    nullifier: int


def create_nullifier_witness(nullifier_secret: int, leaf_index: int) -> NullifierWitness:
    return NullifierWitness(
        nullifier_secret=nullifier_secret,
        leaf_index=leaf_index,
        nullifier=derive_nullifier(nullifier_secret, leaf_index),
    )


def verify_nullifier_derivation(witness: NullifierWitness) -> bool:
    if witness.leaf_index < 0:
        return False
    return derive_nullifier(witness.nullifier_secret, witness.leaf_index) == witness.nullifier


# ==============================================================================
# View tags
# ==============================================================================


def derive_view_tag(shared_secret: int, output_index: int) -> int:
    """Low 16 bits of Poseidon(shared_secret, output_index)."""
    return poseidon(shared_secret, output_index) & VIEW_TAG_MASK


def compute_view_tag(ephemeral_private_key: int, view_public_key: AffinePoint, output_index: int) -> int:
    """Sender side: tag for an output sent to view_public_key."""
    return derive_view_tag(derive_shared_secret(ephemeral_private_key, view_public_key), output_index)


def match_view_tag(
    view_key: int,
    ephemeral_public_key: AffinePoint,
    output_index: int,
    expected_tag: int,
) -> bool:
    """
    Scanner side: cheap pre-filter before a full decryption attempt.

    A match only means "probably mine" (1 in 65536 false positives).
    """
    shared_secret = derive_shared_secret(view_key, ephemeral_public_key)
    return derive_view_tag(shared_secret, output_index) == expected_tag


# ==============================================================================
# Chain helpers
# ==============================================================================


async def is_nullifier_spent(
    nullifier: int, contract_read: Callable[[str], Awaitable[bool]]
) -> bool:
    """Ask the pool contract whether nullifier is already in the spent set."""
    return await contract_read(nullifier_to_felt(nullifier))


def nullifier_to_felt(nullifier: int) -> str:
    return to_felt_hex(nullifier)


def felt_to_nullifier(felt: str) -> int:
    return parse_felt(felt)
