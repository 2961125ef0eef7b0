"""
Authenticated-encryption hints for O(1) ElGamal decryption.

Alongside Enc[pk](m) = (r·G, m·H + r·PK) the sender publishes a hint keyed by
the same shared secret:

    shared    = Poseidon(x, y) of r·PK        (receiver: sk·C1)
    nonce     = Poseidon(r, "AEHNONCE")
    enc_key   = Poseidon(shared, nonce, "AEGENCHINT")
    encrypted = amount XOR enc_key
    mac_key   = Poseidon(shared, nonce, "AEGMACKEY")
    mac       = Poseidon(mac_key, encrypted, nonce)

The receiver rederives both keys, checks the MAC and XORs the amount back
out, with no discrete-log search. A MAC mismatch is an IntegrityFailure, never
a soft miss: the hint was corrupted, tampered with, or made for another key.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from obelysk_privacy.core.errors import IntegrityFailure, ValidationError
from obelysk_privacy.crypto.constants import (
    AE_ENCRYPTION_DOMAIN,
    AE_MAC_DOMAIN,
    AE_NONCE_DOMAIN,
)
from obelysk_privacy.crypto.curve import (
    H,
    Point,
    is_infinity,
    parse_felt,
    random_scalar,
    scalar_mult,
    to_felt_hex,
)
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext, amount_point, decrypt
from obelysk_privacy.crypto.poseidon import poseidon

logger = logging.getLogger("obelysk_privacy.ae_hints")

# Amounts are u128 on-chain
MAX_HINT_AMOUNT = (1 << 128) - 1


@dataclass(frozen=True)
class AEHint:
    """AE hint as stored by the Cairo contract."""
    encrypted_amount: int
    nonce: int
    mac: int

    def to_felts(self) -> list[str]:
        return ae_hint_to_felts(self)


@dataclass(frozen=True)
class TransferHintBundle:
    sender_hint: AEHint
    receiver_hint: AEHint
    auditor_hint: AEHint | None = None


# ==============================================================================
# Key derivation
# ==============================================================================


def derive_shared_secret(private_key: int, public_point: Point) -> int:
    """
    ECDH shared secret: Poseidon of the coordinates of private_key·public_point.

    Raises:
        ValidationError: If the shared point degenerates to infinity.
    """
    shared = scalar_mult(private_key, public_point)
    if is_infinity(shared):
        raise ValidationError("Shared point is the point at infinity")
    return poseidon(shared.x, shared.y)


def _encryption_key(shared_secret: int, nonce: int) -> int:
    return poseidon(shared_secret, nonce, AE_ENCRYPTION_DOMAIN)


def _mac_key(shared_secret: int, nonce: int) -> int:
    return poseidon(shared_secret, nonce, AE_MAC_DOMAIN)


def _compute_mac(mac_key: int, encrypted_amount: int, nonce: int) -> int:
    return poseidon(mac_key, encrypted_amount, nonce)


def _seal(amount: int, shared_secret: int, nonce: int) -> AEHint:
    if not 0 <= amount <= MAX_HINT_AMOUNT:
        raise ValidationError(f"Hint amount must fit in u128, got {amount}")
    encrypted = amount ^ _encryption_key(shared_secret, nonce)
    mac = _compute_mac(_mac_key(shared_secret, nonce), encrypted, nonce)
    return AEHint(encrypted_amount=encrypted, nonce=nonce, mac=mac)


def _open(hint: AEHint, shared_secret: int) -> int:
    expected = _compute_mac(_mac_key(shared_secret, hint.nonce), hint.encrypted_amount, hint.nonce)
    if expected != hint.mac:
        raise IntegrityFailure("AE hint MAC verification failed")
    return hint.encrypted_amount ^ _encryption_key(shared_secret, hint.nonce)


# ==============================================================================
# Create
# ==============================================================================


def create_ae_hint(amount: int, randomness: int, receiver_public_key: Point) -> AEHint:
    """
    Create a hint bound to an ElGamal ciphertext built with the same randomness.

    The receiver recovers the shared secret from C1 = r·G, so no extra key
    exchange is needed. The nonce is derived from r for determinism.

    Args:
        amount: Plaintext amount (u128).
        randomness: The r used in elgamal.encrypt.
        receiver_public_key: Receiver's public key.
    """
    shared_secret = derive_shared_secret(randomness, receiver_public_key)
    nonce = poseidon(randomness, AE_NONCE_DOMAIN)
    return _seal(amount, shared_secret, nonce)


def create_ae_hint_with_key(
    amount: int,
    sender_private_key: int,
    receiver_public_key: Point,
    nonce: int | None = None,
) -> AEHint:
    """Create a hint under a static ECDH secret between sender and receiver keys."""
    shared_secret = derive_shared_secret(sender_private_key, receiver_public_key)
    return _seal(amount, shared_secret, random_scalar() if nonce is None else nonce)


def create_transfer_hint_bundle(
    transfer_amount: int,
    sender_new_balance: int,
    randomness: int,
    sender_public_key: Point,
    receiver_public_key: Point,
    auditor_public_key: Point | None = None,
) -> TransferHintBundle:
    """Hints for the sender's new balance, the receiver's amount, and an optional auditor."""
    return TransferHintBundle(
        sender_hint=create_ae_hint(sender_new_balance, randomness, sender_public_key),
        receiver_hint=create_ae_hint(transfer_amount, randomness, receiver_public_key),
        auditor_hint=(
            create_ae_hint(transfer_amount, randomness, auditor_public_key)
            if auditor_public_key is not None
            else None
        ),
    )


# ==============================================================================
# Open
# ==============================================================================


def decrypt_ae_hint(hint: AEHint, receiver_private_key: int, ephemeral_key: Point) -> int:
    """
    Decrypt a hint in O(1).

    Args:
        hint: The hint to open.
        receiver_private_key: Receiver's secret key.
        ephemeral_key: C1 of the matching ciphertext, or the sender's public key
                       for hints made with create_ae_hint_with_key.

    Raises:
        IntegrityFailure: If the MAC does not verify or the ephemeral key is
                          degenerate.
    """
    try:
        shared_secret = derive_shared_secret(receiver_private_key, ephemeral_key)
    except ValidationError as err:
        raise IntegrityFailure(f"Cannot open AE hint: {err}") from err
    return _open(hint, shared_secret)


def decrypt_ae_hint_from_ciphertext(
    hint: AEHint, ciphertext: ElGamalCiphertext, receiver_private_key: int
) -> int:
    """
    Decrypt a hint and check it against the ciphertext it travels with.

    The MAC only covers C1 (through the shared secret), so the recovered amount
    is also checked against C2: amount·H must equal C2 - sk·C1.

    Raises:
        IntegrityFailure: If the MAC fails or the amount does not match C2.
    """
    amount = decrypt_ae_hint(hint, receiver_private_key, ciphertext.c1)
    if scalar_mult(amount, H) != amount_point(ciphertext, receiver_private_key):
        raise IntegrityFailure("AE hint amount does not match the ElGamal ciphertext")
    return amount


def verify_ae_hint(hint: AEHint, ciphertext: ElGamalCiphertext, receiver_private_key: int) -> bool:
    """Predicate form of decrypt_ae_hint_from_ciphertext. Never raises."""
    try:
        decrypt_ae_hint_from_ciphertext(hint, ciphertext, receiver_private_key)
    except (IntegrityFailure, ValidationError):
        return False
    return True


def batch_decrypt_ae_hints(
    hints: Iterable[tuple[AEHint, ElGamalCiphertext]], receiver_private_key: int
) -> int:
    """
    Sum the amounts of several incoming hints.

    Raises:
        IntegrityFailure: On the first hint that fails authentication.
    """
    return sum(
        decrypt_ae_hint_from_ciphertext(hint, ciphertext, receiver_private_key)
        for hint, ciphertext in hints
    )


def hybrid_decrypt(
    ciphertext: ElGamalCiphertext,
    private_key: int,
    hint: AEHint | None = None,
    candidates: Iterable[int] | None = None,
) -> int:
    """
    Decrypt via the AE hint when present, else via the bounded candidate search.

    A hint that fails authentication is not retried with the search: the
    IntegrityFailure propagates.
    """
    if hint is not None:
        return decrypt_ae_hint_from_ciphertext(hint, ciphertext, private_key)
    logger.info("No AE hint supplied, using bounded discrete-log search")
    return decrypt(ciphertext, private_key, candidates)


# ==============================================================================
# Felt encoding
# ==============================================================================


def ae_hint_to_felts(hint: AEHint) -> list[str]:
    return [to_felt_hex(hint.encrypted_amount), to_felt_hex(hint.nonce), to_felt_hex(hint.mac)]


def felts_to_ae_hint(felts: list[str | int]) -> AEHint:
    """
    Raises:
        ValidationError: On wrong length or non-felt values.
    """
    if len(felts) != 3:
        raise ValidationError(f"Expected 3 felts for an AE hint, got {len(felts)}")
    encrypted, nonce, mac = (parse_felt(f) for f in felts)
    return AEHint(encrypted_amount=encrypted, nonce=nonce, mac=mac)
