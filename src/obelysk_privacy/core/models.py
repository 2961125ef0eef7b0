"""
Wire and storage models for the privacy pool.

Felts cross the wire as 0x-prefixed hex strings; amounts are in base units
(18 decimals for SAGE).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PrivacyNote(BaseModel):
    """
    A deposit note as kept in the client's encrypted note store.

    SECURITY: nullifier_secret and blinding are the spending key for this
    note. Never log or transmit them unencrypted.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    denomination: float
    commitment: str
    nullifier_secret: str = Field(alias="nullifierSecret")
    blinding: str
    leaf_index: int = Field(alias="leafIndex", ge=0)
    deposit_tx_hash: str = Field(alias="depositTxHash")
    created_at: int = Field(alias="createdAt")
    spent: bool = False
    spent_tx_hash: str | None = Field(None, alias="spentTxHash")
    token_symbol: str | None = Field(None, alias="tokenSymbol")
    encrypted_amount: list[str] | None = Field(None, alias="encryptedAmount")
    encryption_randomness: str | None = Field(None, alias="encryptionRandomness")

    def mark_spent(self, tx_hash: str) -> PrivacyNote:
        """Return a copy flagged as spent by tx_hash."""
        return self.model_copy(update={"spent": True, "spent_tx_hash": tx_hash})


def _u256(low: int, high: int) -> int:
    return low + (high << 128)


class PoolStats(BaseModel):
    """Decoded get_pp_stats() result."""
    total_deposits: int
    total_withdrawals: int
    total_volume_deposited: int
    total_volume_withdrawn: int

    @classmethod
    def from_felts(cls, felts: list[int]) -> PoolStats:
        """
        Decode (u64, u64, u256, u256); each u256 spans two felts (low, high).

        Raises:
            ValueError: If fewer than 6 felts are returned.
        """
        if len(felts) < 6:
            raise ValueError(f"get_pp_stats returned {len(felts)} felts, expected 6")
        return cls(
            total_deposits=felts[0],
            total_withdrawals=felts[1],
            total_volume_deposited=_u256(felts[2], felts[3]),
            total_volume_withdrawn=_u256(felts[4], felts[5]),
        )


class DepositEvent(BaseModel):
    """A PPDepositExecuted event as returned by starknet_getEvents."""
    block_number: int = 0
    transaction_hash: str = ""
    from_address: str | None = None
    keys: list[str] = Field(default_factory=list)
    data: list[str] = Field(default_factory=list)

    @property
    def commitment(self) -> str | None:
        """keys[0] is the event selector, keys[1] the deposit commitment."""
        return self.keys[1] if len(self.keys) > 1 else None


class EventsPage(BaseModel):
    events: list[DepositEvent] = Field(default_factory=list)
    continuation_token: str | None = None


class CoordinatorProof(BaseModel):
    """Response of GET /api/privacy/proof/{commitment} on the coordinator."""
    found: bool
    siblings: list[str] = Field(default_factory=list)
    path_indices: list[int] = Field(default_factory=list)
    root: str | None = None
    current_root: str | None = None
    leaf_index: int | None = None

    @property
    def effective_root(self) -> str | None:
        return self.current_root or self.root


class MerkleProofResult(BaseModel):
    """An inclusion proof ready for a withdrawal call, plus where it came from."""
    siblings: list[str]
    path_indices: list[int]
    root: str
    leaf_index: int
    source: Literal["coordinator", "local"]
    tree_size: int | None = None
    root_matches_chain: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
