"""
Lean Incremental Merkle Tree (LeanIMT) for deposit membership proofs.

Node hash (matches lean_imt.cairo):
    hash_pair(l, r) = Poseidon(LEAN_IMT_DOMAIN, l, r)

Two encodings of the same append-only leaf sequence:

    FIXED    Padded to 2^depth leaves with EMPTY_LEAF; empty subtrees hash to
             precomputed zero hashes; every proof has exactly `depth` siblings.
             Used for local recomputation and incremental insertion.

    DYNAMIC  The authoritative on-chain encoding. Depth = ceil(log2(size)) and
             grows with the tree; a node without a right sibling is carried up
             unhashed, and proofs only list siblings that exist.

Both are served by the same functions, parameterized by a MerkleHasher
(domain-separated by default, LEGACY_HASHER for the undomained variant) and a
TreeMode. Leaf index = deposit sequence number, so order matters.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from obelysk_privacy.core.errors import ValidationError
from obelysk_privacy.crypto.constants import (
    EMPTY_LEAF,
    LEAN_IMT_DOMAIN,
    MAX_SPARSE_DEPTH,
    TREE_DEPTH,
)
from obelysk_privacy.crypto.curve import AffinePoint, parse_felt, to_felt_hex
from obelysk_privacy.crypto.poseidon import poseidon

# ==============================================================================
# Hashing
# ==============================================================================


class MerkleHasher:
    """
    Pairwise node hash plus its zero-hash ladder.

    Args:
        domain: Felt prepended to every pair, or None for plain Poseidon(l, r).
    """

    def __init__(self, domain: int | None = LEAN_IMT_DOMAIN) -> None:
        self.domain = domain
        self._zero_hashes: list[int] = [EMPTY_LEAF]

    def hash_pair(self, left: int, right: int) -> int:
        if self.domain is None:
            return poseidon(left, right)
        return poseidon(self.domain, left, right)

    def zero_hash(self, level: int) -> int:
        """Root of an all-empty subtree of height `level`."""
        while len(self._zero_hashes) <= level:
            z = self._zero_hashes[-1]
            self._zero_hashes.append(self.hash_pair(z, z))
        return self._zero_hashes[level]

    def __repr__(self) -> str:
        domain = "none" if self.domain is None else hex(self.domain)
        return f"MerkleHasher(domain={domain})"


DEFAULT_HASHER = MerkleHasher(LEAN_IMT_DOMAIN)
LEGACY_HASHER = MerkleHasher(None)


class TreeMode(str, enum.Enum):
    FIXED = "fixed"
    DYNAMIC = "dynamic"


# ==============================================================================
# Data types
# ==============================================================================


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof. path_indices[i] is 1 when the running node is the right
    child at step i (sibling on the left), 0 otherwise.
    """
    leaf: int
    leaf_index: int
    path_elements: list[int]
    path_indices: list[int]
    root: int


@dataclass(frozen=True)
class SparseSibling:
    hash: int
    is_zero: bool = False


@dataclass(frozen=True)
class SparseMerkleProof:
    """Fixed-depth proof with zero-hash siblings flagged instead of carried."""
    leaf: int
    leaf_index: int
    siblings: list[SparseSibling]
    root: int


@dataclass(frozen=True)
class LeanIMTState:
    depth: int
    root: int
    size: int
    rightmost_path: tuple[int, ...] = field(default_factory=tuple)


# ==============================================================================
# Fixed-depth tree
# ==============================================================================


def _check_depth(depth: int) -> None:
    if depth < 1:
        raise ValidationError(f"depth must be >= 1, got {depth}")


def init_lean_imt(depth: int = TREE_DEPTH, hasher: MerkleHasher = DEFAULT_HASHER) -> LeanIMTState:
    """Empty tree: root is the zero hash at `depth`."""
    _check_depth(depth)
    return LeanIMTState(
        depth=depth,
        root=hasher.zero_hash(depth),
        size=0,
        rightmost_path=(EMPTY_LEAF,) * depth,
    )


def insert_leaf(state: LeanIMTState, leaf: int, hasher: MerkleHasher = DEFAULT_HASHER) -> LeanIMTState:
    """
    Append a leaf in O(depth) and return the new state.

    At an even position the running hash is cached in rightmost_path and
    paired with the zero hash; at an odd position it is paired with the cached
    left sibling.

    Raises:
        ValidationError: If the tree already holds 2^depth leaves.
    """
    if state.size >= 1 << state.depth:
        raise ValidationError(f"Tree is full ({state.size} leaves at depth {state.depth})")

    path = list(state.rightmost_path)
    current = leaf
    index = state.size
    for level in range(state.depth):
        if index % 2 == 0:
            path[level] = current
            current = hasher.hash_pair(current, hasher.zero_hash(level))
        else:
            current = hasher.hash_pair(state.rightmost_path[level], current)
        index //= 2

    return LeanIMTState(depth=state.depth, root=current, size=state.size + 1, rightmost_path=tuple(path))


def _build_layers(leaves: Sequence[int], depth: int, hasher: MerkleHasher) -> list[list[int]]:
    # Only materialize nodes covering real leaves; padding nodes are zero hashes.
    _check_depth(depth)
    if len(leaves) > 1 << depth:
        raise ValidationError(f"{len(leaves)} leaves do not fit in a depth-{depth} tree")
    layers = [list(leaves)]
    for level in range(depth):
        current = layers[level]
        zero = hasher.zero_hash(level)
        nxt = []
        for i in range(0, len(current), 2):
            right = current[i + 1] if i + 1 < len(current) else zero
            nxt.append(hasher.hash_pair(current[i], right))
        if not nxt:
            nxt.append(hasher.zero_hash(level + 1))
        layers.append(nxt)
    return layers


def _extract_proof(leaf_index: int, layers: list[list[int]], depth: int, hasher: MerkleHasher) -> MerkleProof:
    path_elements: list[int] = []
    path_indices: list[int] = []
    index = leaf_index
    for level in range(depth):
        is_right = index % 2 == 1
        sibling = index - 1 if is_right else index + 1
        layer = layers[level]
        path_elements.append(layer[sibling] if sibling < len(layer) else hasher.zero_hash(level))
        path_indices.append(1 if is_right else 0)
        index //= 2
    return MerkleProof(
        leaf=layers[0][leaf_index],
        leaf_index=leaf_index,
        path_elements=path_elements,
        path_indices=path_indices,
        root=layers[depth][0],
    )


def _check_leaf_index(leaf_index: int, size: int) -> None:
    if leaf_index < 0 or leaf_index >= size:
        raise ValidationError(f"Leaf index out of bounds: {leaf_index} (tree has {size} leaves)")


def get_merkle_proof(
    leaf_index: int,
    leaves: Sequence[int],
    depth: int = TREE_DEPTH,
    hasher: MerkleHasher = DEFAULT_HASHER,
) -> MerkleProof:
    """
    Build the fixed-depth tree over the complete ordered leaf list and extract
    the proof for leaf_index.

    Raises:
        ValidationError: If leaf_index is outside [0, len(leaves)) or the
                         leaves do not fit in the tree.
    """
    _check_leaf_index(leaf_index, len(leaves))
    return _extract_proof(leaf_index, _build_layers(leaves, depth, hasher), depth, hasher)


def get_batch_merkle_proofs(
    leaf_indices: Sequence[int],
    leaves: Sequence[int],
    depth: int = TREE_DEPTH,
    hasher: MerkleHasher = DEFAULT_HASHER,
) -> list[MerkleProof]:
    """Proofs for several leaves against one snapshot (one tree build, one root)."""
    for index in leaf_indices:
        _check_leaf_index(index, len(leaves))
    layers = _build_layers(leaves, depth, hasher)
    return [_extract_proof(index, layers, depth, hasher) for index in leaf_indices]


# ==============================================================================
# Verification
# ==============================================================================


def compute_root_from_proof(
    leaf: int,
    path_elements: Sequence[int],
    path_indices: Sequence[int],
    hasher: MerkleHasher = DEFAULT_HASHER,
) -> int:
    """
    Fold leaf with each (sibling, direction) pair.

    Raises:
        ValidationError: On mismatched lengths or a direction other than 0/1.
    """
    if len(path_elements) != len(path_indices):
        raise ValidationError(
            f"path_elements ({len(path_elements)}) and path_indices ({len(path_indices)}) differ in length"
        )
    current = leaf
    for sibling, direction in zip(path_elements, path_indices):
        if direction == 1:
            current = hasher.hash_pair(sibling, current)
        elif direction == 0:
            current = hasher.hash_pair(current, sibling)
        else:
            raise ValidationError(f"Invalid path index: {direction}")
    return current


def verify_merkle_proof(proof: MerkleProof, hasher: MerkleHasher = DEFAULT_HASHER) -> bool:
    """Recompute the root and compare. Never raises."""
    try:
        return compute_root_from_proof(proof.leaf, proof.path_elements, proof.path_indices, hasher) == proof.root
    except (ValidationError, TypeError, ValueError, AttributeError):
        return False


def get_leaf_index(path_indices: Sequence[int]) -> int:
    """Bit i of the index is set when path_indices[i] == 1."""
    index = 0
    for i, bit in enumerate(path_indices):
        if bit == 1:
            index |= 1 << i
    return index


def path_indices_for(leaf_index: int, depth: int) -> list[int]:
    return [(leaf_index >> level) & 1 for level in range(depth)]


# ==============================================================================
# Sparse <-> regular
# ==============================================================================


def sparse_to_regular_proof(
    sparse: SparseMerkleProof,
    depth: int = TREE_DEPTH,
    hasher: MerkleHasher = DEFAULT_HASHER,
) -> MerkleProof:
    """
    Expand flagged zero siblings and derive path_indices from leaf_index bits.

    Raises:
        ValidationError: If the sibling count differs from depth.
    """
    if len(sparse.siblings) != depth:
        raise ValidationError(f"Sparse proof has {len(sparse.siblings)} siblings, expected {depth}")
    return MerkleProof(
        leaf=sparse.leaf,
        leaf_index=sparse.leaf_index,
        path_elements=[
            hasher.zero_hash(level) if s.is_zero else s.hash
            for level, s in enumerate(sparse.siblings)
        ],
        path_indices=path_indices_for(sparse.leaf_index, depth),
        root=sparse.root,
    )


def regular_to_sparse_proof(proof: MerkleProof, hasher: MerkleHasher = DEFAULT_HASHER) -> SparseMerkleProof:
    siblings = []
    for level, element in enumerate(proof.path_elements):
        if element == hasher.zero_hash(level):
            siblings.append(SparseSibling(hash=EMPTY_LEAF, is_zero=True))
        else:
            siblings.append(SparseSibling(hash=element))
    return SparseMerkleProof(leaf=proof.leaf, leaf_index=proof.leaf_index, siblings=siblings, root=proof.root)


# ==============================================================================
# Dynamic-depth tree (on-chain encoding)
# ==============================================================================


def calculate_depth(size: int) -> int:
    """0 -> 0, 1 -> 1, otherwise ceil(log2(size))."""
    if size <= 1:
        return size
    return (size - 1).bit_length()


class SparseLeanIMT:
    """
    Replica of the contract's global deposit tree.

    Nodes live in a (level, index) map exactly as in contract storage. A zero
    value reads as absent, as it does on-chain.

    Usage:
        tree = SparseLeanIMT.from_leaves(commitments)
        proof = tree.get_proof(7)
        assert verify_merkle_proof(proof)
    """

    def __init__(self, hasher: MerkleHasher = DEFAULT_HASHER) -> None:
        self.hasher = hasher
        self.size = 0
        self.root = EMPTY_LEAF
        self._nodes: dict[tuple[int, int], int] = {}

    @classmethod
    def from_leaves(cls, leaves: Sequence[int], hasher: MerkleHasher = DEFAULT_HASHER) -> SparseLeanIMT:
        tree = cls(hasher)
        for leaf in leaves:
            tree.insert(leaf)
        return tree

    @property
    def depth(self) -> int:
        return calculate_depth(self.size)

    def node(self, level: int, index: int) -> int:
        return self._nodes.get((level, index), EMPTY_LEAF)

    def insert(self, leaf: int) -> int:
        """
        Append a leaf, rewriting its path to the root. Returns the new root.

        Raises:
            ValidationError: If the tree would exceed 2^32 leaves.
        """
        index = self.size
        if index >= 1 << MAX_SPARSE_DEPTH:
            raise ValidationError("Tree is full")
        self.size += 1
        depth = calculate_depth(self.size)

        self._nodes[(0, index)] = leaf
        current = leaf
        for level in range(depth):
            is_right = index % 2 == 1
            sibling = self.node(level, index - 1 if is_right else index + 1)
            if sibling != EMPTY_LEAF:
                current = (
                    self.hasher.hash_pair(sibling, current)
                    if is_right
                    else self.hasher.hash_pair(current, sibling)
                )
            index //= 2
            self._nodes[(level + 1, index)] = current

        self.root = current
        return current

    def leaves(self) -> list[int]:
        return [self.node(0, i) for i in range(self.size)]

    def get_proof(self, leaf_index: int) -> MerkleProof:
        """
        Variable-length proof listing only siblings that exist.

        Raises:
            ValidationError: If leaf_index is out of bounds.
        """
        _check_leaf_index(leaf_index, self.size)
        path_elements: list[int] = []
        path_indices: list[int] = []
        index = leaf_index
        for level in range(self.depth):
            is_right = index % 2 == 1
            sibling = self.node(level, index - 1 if is_right else index + 1)
            if sibling != EMPTY_LEAF:
                path_elements.append(sibling)
                path_indices.append(1 if is_right else 0)
            index //= 2
        return MerkleProof(
            leaf=self.node(0, leaf_index),
            leaf_index=leaf_index,
            path_elements=path_elements,
            path_indices=path_indices,
            root=self.node(self.depth, 0),
        )


# ==============================================================================
# Consolidated entry points
# ==============================================================================


def build_proof(
    leaf_index: int,
    leaves: Sequence[int],
    mode: TreeMode = TreeMode.DYNAMIC,
    hasher: MerkleHasher = DEFAULT_HASHER,
    depth: int = TREE_DEPTH,
) -> MerkleProof:
    """Proof for leaf_index in either encoding; depth only applies to FIXED."""
    if mode is TreeMode.FIXED:
        return get_merkle_proof(leaf_index, leaves, depth, hasher)
    return SparseLeanIMT.from_leaves(leaves, hasher).get_proof(leaf_index)


def tree_root(
    leaves: Sequence[int],
    mode: TreeMode = TreeMode.DYNAMIC,
    hasher: MerkleHasher = DEFAULT_HASHER,
    depth: int = TREE_DEPTH,
) -> int:
    if mode is TreeMode.FIXED:
        return _build_layers(leaves, depth, hasher)[depth][0]
    return SparseLeanIMT.from_leaves(leaves, hasher).root


def compute_commitment_hash(commitment: AffinePoint, amount: int, token_address: int) -> int:
    """Leaf value for a pool deposit: Poseidon(C.x, C.y, amount, token)."""
    return poseidon(commitment.x, commitment.y, amount, token_address)


# ==============================================================================
# Contract wire format
# ==============================================================================


class ContractMerkleProof(BaseModel):
    """Proof as the on-chain verifier parses it: hex felts, 0/1 directions."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    leaf: str
    leaf_index: int = Field(alias="leafIndex", ge=0)
    path_elements: list[str] = Field(alias="pathElements")
    path_indices: list[int] = Field(alias="pathIndices")
    root: str

    @field_validator("leaf", "root")
    @classmethod
    def _felt(cls, v: str) -> str:
        _parse_hex_felt(v)
        return v

    @field_validator("path_elements")
    @classmethod
    def _felts(cls, v: list[str]) -> list[str]:
        for element in v:
            _parse_hex_felt(element)
        return v

    @field_validator("path_indices")
    @classmethod
    def _bits(cls, v: list[int]) -> list[int]:
        if any(bit not in (0, 1) for bit in v):
            raise ValueError("path indices must be 0 or 1")
        return v

    @model_validator(mode="after")
    def _same_length(self) -> ContractMerkleProof:
        if len(self.path_elements) != len(self.path_indices):
            raise ValueError("pathElements and pathIndices must have the same length")
        return self


def _parse_hex_felt(value: str) -> int:
    if not value.startswith("0x"):
        raise ValueError(f"felt must be 0x-prefixed hex: {value!r}")
    return parse_felt(value)


def proof_to_contract_format(proof: MerkleProof) -> dict[str, Any]:
    """Serialize with 0x-prefixed, unpadded lowercase hex felts."""
    return {
        "leaf": to_felt_hex(proof.leaf),
        "leafIndex": proof.leaf_index,
        "pathElements": [to_felt_hex(e) for e in proof.path_elements],
        "pathIndices": list(proof.path_indices),
        "root": to_felt_hex(proof.root),
    }


def contract_format_to_proof(data: dict[str, Any]) -> MerkleProof:
    """
    Parse the contract wire format back into a MerkleProof.

    Raises:
        ValidationError: If the payload is malformed.
    """
    try:
        parsed = ContractMerkleProof.model_validate(data)
    except PydanticValidationError as err:
        raise ValidationError(f"Malformed contract proof: {err}") from err
    return MerkleProof(
        leaf=int(parsed.leaf, 16),
        leaf_index=parsed.leaf_index,
        path_elements=[int(e, 16) for e in parsed.path_elements],
        path_indices=list(parsed.path_indices),
        root=int(parsed.root, 16),
    )
