"""
Poseidon hashing over felts (Starknet's Hades permutation via poseidon-py).

poseidon(a)        == poseidon_hash(a, 0)
poseidon(a, b)     == poseidon_hash(a, b)            (starknet.js computePoseidonHash)
poseidon(a, b, ..) == poseidon_hash_many([a, b, ..]) (computePoseidonHashOnElements)
"""

from __future__ import annotations

from Crypto.Hash import keccak
from poseidon_py.poseidon_hash import poseidon_hash, poseidon_hash_many

from obelysk_privacy.crypto.constants import STARK_PRIME

_MASK_250 = (1 << 250) - 1


def poseidon(*inputs: int) -> int:
    """
    Hash one or more integers, each reduced into the field first.

    Raises:
        ValueError: If called with no inputs.
    """
    if not inputs:
        raise ValueError("Poseidon hash requires at least one input")
    felts = [value % STARK_PRIME for value in inputs]
    if len(felts) == 1:
        return poseidon_hash(felts[0], 0)
    if len(felts) == 2:
        return poseidon_hash(felts[0], felts[1])
    return poseidon_hash_many(felts)


def string_to_felt(text: str) -> int:
    """
    Encode a short ASCII string as a felt252 (Cairo short-string encoding).

    Raises:
        ValueError: If the string is not ASCII or longer than 31 characters.
    """
    raw = text.encode("ascii")
    if len(raw) > 31:
        raise ValueError(f"Short string too long for a felt252: {len(raw)} > 31 bytes")
    return int.from_bytes(raw, "big")


def sn_keccak(data: bytes) -> int:
    """Starknet keccak: keccak256 truncated to 250 bits."""
    digest = keccak.new(digest_bits=256, data=data).digest()
    return int.from_bytes(digest, "big") & _MASK_250


def get_selector_from_name(name: str) -> int:
    """Entry-point / event selector for a Cairo function or event name."""
    return sn_keccak(name.encode("ascii"))
