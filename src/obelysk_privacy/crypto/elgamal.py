"""
ElGamal encryption of amounts on the STARK curve.

    Enc(m; r) = (C1, C2) = (r·G, m·H + r·PK)
    Dec:      m·H = C2 - sk·C1

Amounts are encoded on H, not G, matching the contract's amount commitment.
Recovering m from m·H needs a discrete log, so decrypt() here is a bounded
diagnostic path only: it searches the fixed denomination set (or a small
explicit range). The primary path is the AE hint in ae_hints.py, which is O(1).

Ciphertexts are additively homomorphic, so balances can be updated without
decrypting.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from obelysk_privacy.core.errors import DecryptionError, ValidationError
from obelysk_privacy.crypto.curve import (
    G,
    H,
    INFINITY,
    AffinePoint,
    Point,
    add_points,
    felts_to_point,
    is_on_curve,
    negate_point,
    random_scalar,
    scalar_mult,
    to_felt_hex,
)
from obelysk_privacy.crypto.pedersen import fixed_denominations


@dataclass(frozen=True)
class ElGamalCiphertext:
    """
    ElGamal ciphertext, laid out as on-chain: (c1_x, c1_y, c2_x, c2_y).

    Attributes:
        c1: r·G, the ephemeral key.
        c2: m·H + r·PK.
    """
    c1: Point
    c2: Point

    def to_felts(self) -> list[str]:
        return ciphertext_to_felts(self)


def encrypt(amount: int, public_key: Point, randomness: int | None = None) -> ElGamalCiphertext:
    """
    Encrypt amount to public_key.

    Args:
        amount: Plaintext amount (base units).
        public_key: Receiver's public key sk·G.
        randomness: Encryption randomness r; fresh if omitted. Keep it if an AE
                    hint or a re-encryption proof is needed later.
    """
    r = random_scalar() if randomness is None else randomness
    c1 = scalar_mult(r, G)
    c2 = add_points(scalar_mult(amount, H), scalar_mult(r, public_key))
    return ElGamalCiphertext(c1=c1, c2=c2)


def amount_point(ciphertext: ElGamalCiphertext, private_key: int) -> Point:
    """Strip the mask: C2 - sk·C1 = m·H."""
    return add_points(ciphertext.c2, negate_point(scalar_mult(private_key, ciphertext.c1)))


def decrypt(
    ciphertext: ElGamalCiphertext,
    private_key: int,
    candidates: Iterable[int] | None = None,
) -> int:
    """
    Recover the amount by checking it against a bounded candidate set.

    Args:
        ciphertext: The ciphertext to open.
        private_key: Receiver's secret key.
        candidates: Amounts to try; defaults to 0 plus the fixed denominations.

    Raises:
        DecryptionError: If no candidate matches.
    """
    target = amount_point(ciphertext, private_key)
    pool = (0, *fixed_denominations()) if candidates is None else candidates
    for amount in pool:
        if scalar_mult(amount, H) == target:
            return amount
    raise DecryptionError("Amount is not in the candidate set (wrong key or unsupported amount)")


def decrypt_bounded(ciphertext: ElGamalCiphertext, private_key: int, max_value: int) -> int:
    """Recover an amount in [0, max_value] via baby-step giant-step on H."""
    return discrete_log_h(amount_point(ciphertext, private_key), max_value)


def discrete_log_h(target: Point, max_value: int) -> int:
    """
    Find m in [0, max_value] with m·H == target. O(sqrt(max_value)) time and memory.

    Raises:
        ValidationError: If max_value is negative.
        DecryptionError: If no such m exists in range.
    """
    if max_value < 0:
        raise ValidationError(f"max_value must be non-negative, got {max_value}")
    m = math.isqrt(max_value) + 1

    baby_steps: dict[Point, int] = {}
    current: Point = INFINITY
    for i in range(m):
        baby_steps.setdefault(current, i)
        current = add_points(current, H)

    neg_giant = negate_point(scalar_mult(m, H))
    current = target
    for j in range(m + 1):
        i = baby_steps.get(current)
        if i is not None:
            found = j * m + i
            if found <= max_value:
                return found
        current = add_points(current, neg_giant)
    raise DecryptionError(f"Discrete log not found within [0, {max_value}]")


# ==============================================================================
# Homomorphic operations
# ==============================================================================


def add_ciphertexts(a: ElGamalCiphertext, b: ElGamalCiphertext) -> ElGamalCiphertext:
    """Enc(m1) + Enc(m2) = Enc(m1 + m2)."""
    return ElGamalCiphertext(c1=add_points(a.c1, b.c1), c2=add_points(a.c2, b.c2))


def subtract_ciphertexts(a: ElGamalCiphertext, b: ElGamalCiphertext) -> ElGamalCiphertext:
    """Enc(m1) - Enc(m2) = Enc(m1 - m2)."""
    negated = ElGamalCiphertext(c1=negate_point(b.c1), c2=negate_point(b.c2))
    return add_ciphertexts(a, negated)


def rerandomize(
    ciphertext: ElGamalCiphertext, public_key: Point, randomness: int | None = None
) -> ElGamalCiphertext:
    """Same plaintext, fresh randomness: add an encryption of zero."""
    return add_ciphertexts(ciphertext, encrypt(0, public_key, randomness))


def scalar_mult_ciphertext(k: int, ciphertext: ElGamalCiphertext) -> ElGamalCiphertext:
    """k·Enc(m) = Enc(k·m)."""
    return ElGamalCiphertext(c1=scalar_mult(k, ciphertext.c1), c2=scalar_mult(k, ciphertext.c2))


def verify_ciphertext(ciphertext: ElGamalCiphertext) -> bool:
    return is_on_curve(ciphertext.c1) and is_on_curve(ciphertext.c2)


# ==============================================================================
# Felt encoding
# ==============================================================================


def _point_felts(point: Point) -> list[str]:
    # the contract stores the identity as (0, 0)
    if point is INFINITY:
        return ["0x0", "0x0"]
    return [to_felt_hex(point.x), to_felt_hex(point.y)]


def ciphertext_to_felts(ciphertext: ElGamalCiphertext) -> list[str]:
    return _point_felts(ciphertext.c1) + _point_felts(ciphertext.c2)


def felts_to_ciphertext(felts: list[str | int]) -> ElGamalCiphertext:
    """
    Parse [c1_x, c1_y, c2_x, c2_y] from a contract response.

    Raises:
        ValidationError: On wrong length or off-curve points.
    """
    if len(felts) != 4:
        raise ValidationError(f"Expected 4 felts for a ciphertext, got {len(felts)}")
    return ElGamalCiphertext(c1=felts_to_point(felts[0:2]), c2=felts_to_point(felts[2:4]))


def public_key_from_private(private_key: int) -> AffinePoint:
    return scalar_mult(private_key, G)
