"""
Field and elliptic-curve arithmetic over the STARK prime.

Provides:
- Modular helpers: mod, mod_inverse, mod_pow, legendre_symbol, sqrt_mod
- Point type: AffinePoint | INFINITY (tagged, no coordinate sentinel)
- Group law: add_points, negate_point, scalar_mult
- Key material: random_scalar, generate_key_pair
- Encodings: compressed hex, felt pairs

Points are not checked for curve membership on every operation. Call
is_on_curve() where points cross a trust boundary; the decoders in this
module already do.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Union

from obelysk_privacy.core.errors import ValidationError
from obelysk_privacy.crypto.constants import (
    CURVE_A,
    CURVE_B,
    CURVE_ORDER,
    GENERATOR_X,
    GENERATOR_Y,
    PEDERSEN_H_X,
    PEDERSEN_H_Y,
    STARK_PRIME,
)

# ==============================================================================
# Modular arithmetic
# ==============================================================================


def mod(a: int, m: int) -> int:
    """Reduce a into [0, m)."""
    result = a % m
    return result + m if result < 0 else result


def mod_inverse(a: int, m: int) -> int:
    """
    Multiplicative inverse of a modulo m via the extended Euclidean algorithm.

    Raises:
        ValueError: If a has no inverse modulo m (gcd(a, m) != 1).
    """
    old_r, r = mod(a, m), m
    old_s, s = 1, 0
    while r != 0:
        quotient = old_r // r
        old_r, r = r, old_r - quotient * r
        old_s, s = s, old_s - quotient * s
    if old_r != 1:
        raise ValueError(f"{a} is not invertible modulo {m}")
    return mod(old_s, m)


def mod_pow(base: int, exp: int, m: int) -> int:
    """Square-and-multiply modular exponentiation for exp >= 0."""
    if m == 1:
        return 0
    result = 1
    base = mod(base, m)
    while exp > 0:
        if exp & 1:
            result = (result * base) % m
        exp >>= 1
        base = (base * base) % m
    return result


def legendre_symbol(a: int, p: int = STARK_PRIME) -> int:
    """Return 1 for a non-zero quadratic residue, -1 for a non-residue, 0 for 0."""
    ls = mod_pow(a, (p - 1) // 2, p)
    return -1 if ls == p - 1 else ls


def sqrt_mod(n: int, p: int = STARK_PRIME) -> int | None:
    """
    Square root of n modulo the odd prime p (Tonelli-Shanks).

    The STARK prime has p - 1 = 2^192 · q, so the (p+1)/4 shortcut does not
    apply and the full algorithm is required.

    Returns:
        A root r with r² ≡ n (mod p), or None if n is not a quadratic residue.
    """
    n = mod(n, p)
    if n == 0:
        return 0
    if legendre_symbol(n, p) != 1:
        return None

    q, s = p - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1

    z = 2
    while legendre_symbol(z, p) != -1:
        z += 1

    m = s
    c = mod_pow(z, q, p)
    t = mod_pow(n, q, p)
    r = mod_pow(n, (q + 1) // 2, p)

    while t != 1:
        # least i with t^(2^i) == 1
        i, tmp = 1, (t * t) % p
        while tmp != 1:
            tmp = (tmp * tmp) % p
            i += 1
        b = c
        for _ in range(m - i - 1):
            b = (b * b) % p
        m = i
        c = (b * b) % p
        t = (t * c) % p
        r = (r * b) % p
    return r


def curve_rhs(x: int) -> int:
    """Right-hand side of the curve equation, x³ + α·x + β mod p."""
    return (pow(x, 3, STARK_PRIME) + CURVE_A * x + CURVE_B) % STARK_PRIME


# ==============================================================================
# Point type
# ==============================================================================


class PointAtInfinity:
    """The group identity. Use the module-level INFINITY singleton."""

    _instance: PointAtInfinity | None = None

    def __new__(cls) -> PointAtInfinity:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INFINITY"

    def __add__(self, other: Point) -> Point:
        return add_points(self, other)

    def __sub__(self, other: Point) -> Point:
        return negate_point(other)

    def __neg__(self) -> Point:
        return self

    def __rmul__(self, k: int) -> Point:
        return self


INFINITY = PointAtInfinity()


@dataclass(frozen=True)
class AffinePoint:
    """A finite curve point in affine coordinates."""
    x: int
    y: int

    def __add__(self, other: Point) -> Point:
        return add_points(self, other)

    def __sub__(self, other: Point) -> Point:
        return add_points(self, negate_point(other))

    def __neg__(self) -> Point:
        return negate_point(self)

    def __rmul__(self, k: int) -> Point:
        return scalar_mult(k, self)


Point = Union[AffinePoint, PointAtInfinity]

G = AffinePoint(GENERATOR_X, GENERATOR_Y)
H = AffinePoint(PEDERSEN_H_X, PEDERSEN_H_Y)


# ==============================================================================
# Group law
# ==============================================================================


def is_infinity(p: Point) -> bool:
    return p is INFINITY


def is_on_curve(p: Point) -> bool:
    """True if p is INFINITY or satisfies y² = x³ + α·x + β with reduced coordinates."""
    if is_infinity(p):
        return True
    if not (0 <= p.x < STARK_PRIME and 0 <= p.y < STARK_PRIME):
        return False
    return (p.y * p.y) % STARK_PRIME == curve_rhs(p.x)


def negate_point(p: Point) -> Point:
    if is_infinity(p):
        return INFINITY
    return AffinePoint(p.x, mod(-p.y, STARK_PRIME))


def add_points(p1: Point, p2: Point) -> Point:
    """
    Add two points with the complete affine addition law.

    Handles the identity, P + (-P) = INFINITY, doubling, and the vertical
    tangent (y = 0) case.
    """
    if is_infinity(p1):
        return p2
    if is_infinity(p2):
        return p1

    if p1.x == p2.x:
        if (p1.y + p2.y) % STARK_PRIME == 0:
            return INFINITY
        # doubling
        numerator = (3 * p1.x * p1.x + CURVE_A) % STARK_PRIME
        slope = (numerator * mod_inverse(2 * p1.y, STARK_PRIME)) % STARK_PRIME
    else:
        numerator = (p2.y - p1.y) % STARK_PRIME
        slope = (numerator * mod_inverse(p2.x - p1.x, STARK_PRIME)) % STARK_PRIME

    x3 = (slope * slope - p1.x - p2.x) % STARK_PRIME
    y3 = (slope * (p1.x - x3) - p1.y) % STARK_PRIME
    return AffinePoint(x3, y3)


def scalar_mult(k: int, p: Point) -> Point:
    """
    Compute k·p by double-and-add.

    The scalar is reduced mod the curve order; a negative scalar multiplies
    the negated point.
    """
    if k < 0:
        k = -k
        p = negate_point(p)
    k = k % CURVE_ORDER
    if k == 0 or is_infinity(p):
        return INFINITY

    result: Point = INFINITY
    addend: Point = p
    while k > 0:
        if k & 1:
            result = add_points(result, addend)
        addend = add_points(addend, addend)
        k >>= 1
    return result


# ==============================================================================
# Key material
# ==============================================================================


def random_scalar() -> int:
    """Uniform non-zero scalar in [1, n-1]."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1


@dataclass(frozen=True)
class PrivacyKeyPair:
    private_key: int
    public_key: AffinePoint


def generate_key_pair() -> PrivacyKeyPair:
    private_key = random_scalar()
    return PrivacyKeyPair(private_key=private_key, public_key=scalar_mult(private_key, G))


# ==============================================================================
# Encodings
# ==============================================================================


def to_felt_hex(value: int) -> str:
    """0x-prefixed, unpadded, lowercase hex."""
    return hex(value)


def parse_felt(value: str | int) -> int:
    """
    Parse a felt from an int or a hex/decimal string and range-check it.

    Raises:
        ValidationError: If the value is not an integer in [0, p).
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid felt: {value!r}")
    if isinstance(value, int):
        felt = value
    elif isinstance(value, str):
        try:
            felt = int(value, 0) if value.lower().startswith("0x") else int(value, 10)
        except ValueError as err:
            raise ValidationError(f"Invalid felt: {value!r}") from err
    else:
        raise ValidationError(f"Invalid felt type: {type(value).__name__}")
    if not 0 <= felt < STARK_PRIME:
        raise ValidationError(f"Felt out of range: {value!r}")
    return felt


def point_to_felts(point: AffinePoint) -> list[str]:
    return [to_felt_hex(point.x), to_felt_hex(point.y)]


def felts_to_point(felts: list[str | int]) -> Point:
    """
    Parse an (x, y) felt pair, mapping the on-chain (0, 0) encoding to INFINITY.

    Raises:
        ValidationError: If the pair is malformed or not on the curve.
    """
    if len(felts) != 2:
        raise ValidationError(f"Expected 2 felts for a point, got {len(felts)}")
    x, y = parse_felt(felts[0]), parse_felt(felts[1])
    if x == 0 and y == 0:
        return INFINITY
    point = AffinePoint(x, y)
    if not is_on_curve(point):
        raise ValidationError(f"Point ({hex(x)}, {hex(y)}) is not on the STARK curve")
    return point


def compress_point(point: AffinePoint) -> str:
    """
    Encode as 66-char hex: 02/03 parity prefix + 32-byte x.

    Raises:
        ValueError: If the point is INFINITY.
    """
    if is_infinity(point):
        raise ValueError("Cannot compress the point at infinity")
    prefix = "03" if point.y & 1 else "02"
    return prefix + format(point.x, "064x")


def decompress_point(compressed: str) -> AffinePoint:
    """
    Decode a compressed point produced by compress_point.

    Raises:
        ValidationError: On a bad prefix, bad length, or an x with no curve point.
    """
    if len(compressed) != 66:
        raise ValidationError(f"Expected 66 hex chars, got {len(compressed)}")
    prefix = compressed[:2]
    if prefix not in ("02", "03"):
        raise ValidationError(f"Invalid prefix: {prefix}")
    try:
        x = int(compressed[2:], 16)
    except ValueError as err:
        raise ValidationError("Compressed point is not valid hex") from err
    if x >= STARK_PRIME:
        raise ValidationError("x coordinate out of field range")

    y = sqrt_mod(curve_rhs(x))
    if y is None:
        raise ValidationError(f"x = {hex(x)} does not correspond to a curve point")
    if (y & 1) != (1 if prefix == "03" else 0):
        y = mod(-y, STARK_PRIME)
    return AffinePoint(x, y)
