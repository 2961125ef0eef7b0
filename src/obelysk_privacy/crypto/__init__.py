"""
obelysk_privacy.crypto — Cryptographic primitives for the STARK-curve privacy pool.

Provides:
- STARK curve arithmetic and point encodings
- Pedersen Commitments (C = value·G + blinding·H)
- ElGamal encryption of amounts with O(1) AE hints
- Nullifier and view-tag derivation
- Lean Incremental Merkle Tree (fixed-depth and on-chain encodings)
"""

from obelysk_privacy.crypto.ae_hints import (
    AEHint,
    create_ae_hint,
    decrypt_ae_hint,
    decrypt_ae_hint_from_ciphertext,
    hybrid_decrypt,
)
from obelysk_privacy.crypto.curve import (
    G,
    H,
    INFINITY,
    AffinePoint,
    generate_key_pair,
    is_on_curve,
    scalar_mult,
)
from obelysk_privacy.crypto.elgamal import ElGamalCiphertext, decrypt, encrypt
from obelysk_privacy.crypto.merkle import (
    MerkleProof,
    SparseLeanIMT,
    TreeMode,
    build_proof,
    get_merkle_proof,
    verify_merkle_proof,
)
from obelysk_privacy.crypto.nullifier import derive_nullifier
from obelysk_privacy.crypto.pedersen import commit, create_note, verify_opening

__all__ = [
    "AEHint",
    "AffinePoint",
    "ElGamalCiphertext",
    "G",
    "H",
    "INFINITY",
    "MerkleProof",
    "SparseLeanIMT",
    "TreeMode",
    "build_proof",
    "commit",
    "create_ae_hint",
    "create_note",
    "decrypt",
    "decrypt_ae_hint",
    "decrypt_ae_hint_from_ciphertext",
    "derive_nullifier",
    "encrypt",
    "generate_key_pair",
    "get_merkle_proof",
    "hybrid_decrypt",
    "is_on_curve",
    "scalar_mult",
    "verify_merkle_proof",
    "verify_opening",
]
