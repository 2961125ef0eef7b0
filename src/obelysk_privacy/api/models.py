from pydantic import BaseModel, Field


class ProofResponse(BaseModel):
    """Response model for a Merkle inclusion proof lookup."""

    found: bool = Field(..., description="Whether the commitment is in the deposit tree")
    siblings: list[str] = Field(default_factory=list, description="Sibling hashes, leaf to root")
    path_indices: list[int] = Field(
        default_factory=list,
        description="1 where the sibling is on the left, 0 where it is on the right",
    )
    root: str | None = Field(None, description="Root the proof verifies against")
    current_root: str | None = Field(None, description="Current on-chain deposit root")
    leaf_index: int | None = Field(None, description="Insertion index of the commitment")
    tree_size: int | None = Field(None, description="Number of deposits in the tree")


class PoolStatsResponse(BaseModel):
    """Response model for pool statistics."""

    total_deposits: int = Field(..., description="Number of deposits ever made")
    total_withdrawals: int = Field(..., description="Number of withdrawals ever made")
    total_volume_deposited: str = Field(..., description="Deposited volume in base units (decimal)")
    total_volume_withdrawn: str = Field(..., description="Withdrawn volume in base units (decimal)")
