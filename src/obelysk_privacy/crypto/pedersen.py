"""
Pedersen Commitments over the STARK curve.

Mathematical foundation:
    C = value·G + blinding·H
    where H = hash_to_curve("OBELYSK_PEDERSEN_H_V1") has unknown discrete log
    with respect to G.

    - Hiding:      C reveals nothing about value without blinding
    - Binding:     holds as long as log_G(H) stays unknown
    - Homomorphic: C(v1, b1) + C(v2, b2) = C(v1 + v2, b1 + b2)

H is derived offline by try-and-increment and hardcoded in constants.py;
derive_generator_h() reproduces it for audit.

Deposits are restricted to PRIVACY_DENOMINATIONS so an observer only learns
which bucket a note belongs to.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from obelysk_privacy.core.errors import ValidationError
from obelysk_privacy.crypto.constants import (
    CURVE_ORDER,
    PEDERSEN_H_DOMAIN,
    PRIVACY_DENOMINATIONS,
    SAGE_DECIMALS,
    STARK_PRIME,
)
from obelysk_privacy.crypto.curve import (
    G,
    H,
    AffinePoint,
    Point,
    add_points,
    curve_rhs,
    is_infinity,
    is_on_curve,
    legendre_symbol,
    negate_point,
    random_scalar,
    scalar_mult,
    sqrt_mod,
    to_felt_hex,
)
from obelysk_privacy.crypto.poseidon import poseidon, string_to_felt

# ==============================================================================
# hash_to_curve — generator derivation
# ==============================================================================


def hash_to_curve(domain: str, max_attempts: int = 1000) -> tuple[AffinePoint, int]:
    """
    Derive a curve point with no known discrete log via try-and-increment.

    Algorithm:
        For counter = 0, 1, 2, ...:
            x = Poseidon(felt(domain), counter)
            if x³ + x + β is a quadratic residue:
                y = sqrt(x³ + x + β), canonicalized to y <= p/2
                return (x, y)

    Args:
        domain: ASCII domain separator (at most 31 chars).
        max_attempts: Upper bound on counters tried.

    Returns:
        (point, counter): the point and the counter that produced it.

    Raises:
        RuntimeError: If no point is found within max_attempts.
    """
    domain_felt = string_to_felt(domain)
    for counter in range(max_attempts):
        x = poseidon(domain_felt, counter) % STARK_PRIME
        rhs = curve_rhs(x)
        if legendre_symbol(rhs) != 1:
            continue
        y = sqrt_mod(rhs)
        if y > STARK_PRIME // 2:
            y = STARK_PRIME - y
        return AffinePoint(x, y), counter
    raise RuntimeError(f"hash_to_curve: no valid point in {max_attempts} attempts")


def derive_generator_h() -> AffinePoint:
    """Recompute the Pedersen H generator from its domain separator."""
    point, _ = hash_to_curve(PEDERSEN_H_DOMAIN)
    return point


# ==============================================================================
# Commitments
# ==============================================================================


def commit(value: int, blinding: int) -> Point:
    """C = value·G + blinding·H, both scalars reduced mod the curve order."""
    v_g = scalar_mult(value % CURVE_ORDER, G)
    b_h = scalar_mult(blinding % CURVE_ORDER, H)
    return add_points(v_g, b_h)


def commit_with_random_blinding(value: int) -> tuple[Point, int]:
    """Commit with a fresh blinding factor. Returns (commitment, blinding)."""
    blinding = random_scalar()
    return commit(value, blinding), blinding


def verify_opening(commitment: Point, value: int, blinding: int) -> bool:
    """Check that (value, blinding) opens commitment. Never raises."""
    try:
        return commit(value, blinding) == commitment
    except (TypeError, ValueError, AttributeError):
        return False


def add_commitments(c1: Point, c2: Point) -> Point:
    return add_points(c1, c2)


def subtract_commitments(c1: Point, c2: Point) -> Point:
    """C1 - C2 = commit(v1 - v2, b1 - b2)."""
    return add_points(c1, negate_point(c2))


def scalar_mult_commitment(k: int, c: Point) -> Point:
    """k·C = commit(k·v, k·b)."""
    return scalar_mult(k, c)


def verify_commitment(c: Point) -> bool:
    return is_on_curve(c)


def commitment_to_felt(commitment: Point) -> str:
    """Poseidon(x, y) of the commitment point, as stored on-chain."""
    if is_infinity(commitment):
        raise ValidationError("Cannot hash the point at infinity as a commitment")
    return to_felt_hex(poseidon(commitment.x, commitment.y))


def commitment_to_contract_format(commitment: AffinePoint) -> dict[str, str]:
    return {"x": to_felt_hex(commitment.x), "y": to_felt_hex(commitment.y)}


# ==============================================================================
# Fixed denominations
# ==============================================================================


def value_to_fixed_denomination(value: float | int | str, decimals: int = SAGE_DECIMALS) -> int:
    """
    Convert a human-readable amount to base units, restricted to the pool set.

    Raises:
        ValidationError: If value is not one of PRIVACY_DENOMINATIONS.
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation as err:
        raise ValidationError(f"Invalid amount: {value!r}") from err
    if amount not in {Decimal(str(d)) for d in PRIVACY_DENOMINATIONS}:
        raise ValidationError(
            f"Unsupported denomination: {value}. Available: {list(PRIVACY_DENOMINATIONS)}"
        )
    return int(amount * (Decimal(10) ** decimals))


def fixed_denomination_to_value(fixed_value: int, decimals: int = SAGE_DECIMALS) -> float:
    """
    Inverse of value_to_fixed_denomination.

    Raises:
        ValidationError: If fixed_value is not a pool denomination in base units.
    """
    if fixed_value not in fixed_denominations(decimals):
        raise ValidationError(f"{fixed_value} is not a fixed denomination")
    return float(Decimal(fixed_value) / (Decimal(10) ** decimals))


def fixed_denominations(decimals: int = SAGE_DECIMALS) -> tuple[int, ...]:
    """All pool denominations in base units, ascending."""
    return tuple(value_to_fixed_denomination(d, decimals) for d in PRIVACY_DENOMINATIONS)


# ==============================================================================
# Notes
# ==============================================================================


@dataclass(frozen=True)
class NoteData:
    """
    Client-side opening of a deposit.

    SECURITY: blinding and nullifier_secret must never leave the client
    unencrypted. Loss = loss of funds.
    """
    value: int
    blinding: int
    nullifier_secret: int
    commitment: AffinePoint


def create_note(value: int) -> NoteData:
    commitment, blinding = commit_with_random_blinding(value)
    return NoteData(
        value=value,
        blinding=blinding,
        nullifier_secret=random_scalar(),
        commitment=commitment,
    )


def serialize_note(note: NoteData) -> str:
    """Serialize to JSON (decimal strings). Encrypt before storing."""
    return json.dumps({
        "value": str(note.value),
        "blinding": str(note.blinding),
        "nullifierSecret": str(note.nullifier_secret),
        "commitment": {
            "x": str(note.commitment.x),
            "y": str(note.commitment.y),
        },
    })


def deserialize_note(data: str) -> NoteData:
    """
    Parse a note produced by serialize_note.

    Raises:
        ValidationError: If the JSON is malformed or the commitment is off-curve.
    """
    try:
        parsed = json.loads(data)
        note = NoteData(
            value=int(parsed["value"]),
            blinding=int(parsed["blinding"]),
            nullifier_secret=int(parsed["nullifierSecret"]),
            commitment=AffinePoint(
                int(parsed["commitment"]["x"]),
                int(parsed["commitment"]["y"]),
            ),
        )
    except (KeyError, TypeError, ValueError) as err:
        raise ValidationError(f"Malformed note: {err}") from err
    if not is_on_curve(note.commitment):
        raise ValidationError("Note commitment is not on the STARK curve")
    return note
