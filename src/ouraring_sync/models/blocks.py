"""Block tree models shared by the builder, the reconciler and the host client."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BlockNode(BaseModel):
    """A block we want to exist. Built fresh on every sync."""

    text: str
    children: list[BlockNode] = Field(default_factory=list)


class ExistingNode(BaseModel):
    """A block read back from the graph.

    ``uid`` belongs to the host: we reuse it for updates, deletes, moves and
    child creation, and never make one up.
    """

    uid: str
    text: str = ""
    order: int = 0
    children: list[ExistingNode] = Field(default_factory=list)


class ReconcileStats(BaseModel):
    """Mutation counts for one reconcile run (or an aggregate of runs)."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    moved: int = 0
    untouched: int = 0

    def merge(self, other: ReconcileStats) -> ReconcileStats:
        return ReconcileStats(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            deleted=self.deleted + other.deleted,
            moved=self.moved + other.moved,
            untouched=self.untouched + other.untouched,
        )

    @property
    def mutations(self) -> int:
        return self.created + self.updated + self.deleted + self.moved
