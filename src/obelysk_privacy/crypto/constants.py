"""
STARK curve and protocol constants.

The STARK curve is the short Weierstrass curve y² = x³ + α·x + β over the
STARK prime field, α = 1. Every value here must match the deployed Cairo
contracts bit for bit.
"""

from __future__ import annotations

# ==============================================================================
# Field and curve
# ==============================================================================

# p = 2^251 + 17·2^192 + 1
STARK_PRIME = 0x800000000000011000000000000000000000000000000000000000000000001

# Number of points in the prime-order subgroup generated by G
CURVE_ORDER = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F

CURVE_A = 1
CURVE_B = 0x6F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89

GENERATOR_X = 0x1EF15C18599971B7BECED415A40F0C7DEACFD9B0D1819E03D723D8BC943CFCA
GENERATOR_Y = 0x5668060AA49730B7BE4801DF46EC62DE53ECD11ABE43A32873000C36E8DC1F

# Second generator H = hash_to_curve("OBELYSK_PEDERSEN_H_V1"), counter 0.
# Matches GEN_H_X / GEN_H_Y in the elgamal Cairo contract.
PEDERSEN_H_DOMAIN = "OBELYSK_PEDERSEN_H_V1"
PEDERSEN_H_X = 0x73BD2C9434C955F80B06D2847F8384A226D6CC2557A5735FD9F84D632F576BE
PEDERSEN_H_Y = 0x1BD58EA52858154DE69BF90E446FF200F173D49DA444C4F462652CE6B93457E

# ==============================================================================
# Domain separators (ASCII encoded as felt252)
# ==============================================================================

# 'OBELYSK_LEAN_IMT_V1'
LEAN_IMT_DOMAIN = 0x4F42454C59534B5F4C45414E5F494D545F5631

# AE hint key derivation: "AEGENCHINT", "AEGMACKEY", "AEHNONCE"
AE_ENCRYPTION_DOMAIN = 0x414547454E4348494E54
AE_MAC_DOMAIN = 0x4145474D41434B4559
AE_NONCE_DOMAIN = 0x4145484E4F4E4345

WITHDRAWAL_NULLIFIER_DOMAIN = "NULLIFIER"
STEALTH_NULLIFIER_DOMAIN = "STEALTH_ADDR"

# ==============================================================================
# Privacy pool
# ==============================================================================

# Fixed deposit denominations (in SAGE). Only these amounts may enter the pool.
PRIVACY_DENOMINATIONS = (0.1, 1, 10, 100, 1000)
SAGE_DECIMALS = 18

# Merkle tree
TREE_DEPTH = 20
EMPTY_LEAF = 0
MAX_SPARSE_DEPTH = 32

# Low 16 bits of the view-tag hash
VIEW_TAG_MASK = 0xFFFF
