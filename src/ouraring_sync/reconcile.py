"""Identity-based block reconciliation against the Roam graph.

Syncs a freshly built block tree into whatever already sits under a page,
reusing existing blocks (and their uids) instead of deleting and
recreating them. Blocks we cannot identify are left exactly as they are.

Per sibling level the phases are:
  1) Match (desired vs. existing, by identity key)
  2) Update text of matched blocks / create unmatched ones, recursing
     into matched children and creating new subtrees depth-first
  3) Delete managed blocks whose key is no longer desired (one call per
     subtree; the graph cascades to descendants)
  4) Reorder matched and created blocks into desired order

Matching rules:
  - Keys come from the identity module: the fixed day-block key at page
    level, section / property / row keys below it. Row keys depend on the
    path of section keys above the row, so a ``Score: ...`` note placed
    directly under the day block is not mistaken for a Sleep row.
  - When the desired level holds a key n times, the first n existing
    blocks with that key are used (n is 1 for everything but repeated
    timed rows). Later duplicates are treated as foreign and never deleted.
  - A desired block without a key (a workout line with no start time)
    matches an existing keyless sibling with exactly the same text, or
    is created.
  - Existing blocks without a key that no desired block claims by text
    are foreign: no update, move or delete is ever issued for them, and
    their subtrees are not walked.

Ordering:
  - New blocks are appended after everything already on that level.
  - Managed blocks are then permuted among the positions they occupy so
    they follow the desired order. Foreign blocks are never the subject
    of a move, so their order relative to each other does not change.

Every mutating call is followed by a settle delay because the graph does
not immediately show very recent writes, and child creation needs the
parent created just before it. Long runs yield to the event loop every
``yield_every`` steps.

The host is wired as an object with these coroutines:
  - read_tree(uid) -> list[ExistingNode]   (full subtree, ordered)
  - create_node(parent_uid, text, order="last") -> str (new uid)
  - update_node(uid, text) -> None
  - delete_node(uid) -> None
  - move_node(uid, parent_uid, order) -> None
"""

import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from .constants import MUTATION_DELAY_SECONDS, YIELD_BATCH_SIZE
from .identity import Scope, extract_child_key, extract_root_key
from .models import BlockNode, ExistingNode, ReconcileStats

logger = logging.getLogger(__name__)

KeyFn = Callable[[BlockNode | ExistingNode], str | None]
ScopedKeyFn = Callable[[BlockNode | ExistingNode, Scope], str | None]


class HostDocument(Protocol):
    async def read_tree(self, uid: str) -> list[ExistingNode]: ...

    async def create_node(self, parent_uid: str, text: str, order: int | str = "last") -> str: ...

    async def update_node(self, uid: str, text: str) -> None: ...

    async def delete_node(self, uid: str) -> None: ...

    async def move_node(self, uid: str, parent_uid: str, order: int | str) -> None: ...


def root_key(node: BlockNode | ExistingNode) -> str | None:
    return extract_root_key(node)


def child_key(node: BlockNode | ExistingNode, scope: Scope = ()) -> str | None:
    return extract_child_key(node.text, scope)


@dataclass
class LevelMatch:
    """Result of matching one sibling level."""

    pairs: list[tuple[BlockNode, ExistingNode | None]]
    stale: list[ExistingNode]


@dataclass
class _Run:
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    steps: int = 0


def match_level(
    existing: Sequence[ExistingNode],
    desired: Sequence[BlockNode],
    key_fn: KeyFn,
) -> LevelMatch:
    """Pair each desired block with at most one existing block.

    ``stale`` lists the managed existing blocks no desired block claimed,
    in their current order. Foreign and duplicate blocks never appear in
    either result.
    """
    desired_keys = [key_fn(node) for node in desired]
    wanted = Counter(key for key in desired_keys if key is not None)

    by_key: dict[str, list[ExistingNode]] = defaultdict(list)
    by_text: dict[str, list[ExistingNode]] = defaultdict(list)
    for node in existing:
        key = key_fn(node)
        if key is None:
            by_text[node.text].append(node)
        elif len(by_key[key]) >= max(1, wanted[key]):
            logger.debug(f"Duplicate block for key {key!r} ({node.uid}) left as foreign")
        else:
            by_key[key].append(node)

    pairs: list[tuple[BlockNode, ExistingNode | None]] = []
    for node, key in zip(desired, desired_keys):
        if key is not None:
            candidates = by_key.get(key)
        else:
            candidates = by_text.get(node.text)
        match = candidates.pop(0) if candidates else None
        pairs.append((node, match))

    unclaimed = {n.uid for nodes in by_key.values() for n in nodes}
    return LevelMatch(pairs=pairs, stale=[n for n in existing if n.uid in unclaimed])


def plan_moves(current: Sequence[str], desired_managed: Sequence[str]) -> list[tuple[str, int | str]]:
    """Moves that put managed uids in desired order without moving foreign ones.

    ``current`` is the sibling order as it stands (foreign and managed
    uids mixed); ``desired_managed`` is the wanted order of the managed
    uids. Managed blocks keep the set of positions they already occupy and
    are permuted among them. Returns ``(uid, order)`` pairs where ``order``
    is the target index, or ``"last"`` to park a managed block at the end
    when it sits where a foreign block has to stay.
    """
    managed = set(desired_managed)
    slots = iter(desired_managed)
    final = [next(slots) if uid in managed else uid for uid in current]

    working = list(current)
    moves: list[tuple[str, int | str]] = []
    idx = 0
    while idx < len(final):
        if working[idx] == final[idx]:
            idx += 1
            continue
        wanted = final[idx]
        if wanted in managed:
            working.remove(wanted)
            working.insert(idx, wanted)
            moves.append((wanted, idx))
            idx += 1
        else:
            blocker = working.pop(idx)
            working.append(blocker)
            moves.append((blocker, "last"))
    return moves


class BlockReconciler:
    """Reconcile desired block trees into the graph under a given parent."""

    def __init__(
        self,
        host: HostDocument,
        settle_delay: float = MUTATION_DELAY_SECONDS,
        yield_every: int = YIELD_BATCH_SIZE,
        top_key: KeyFn = root_key,
        nested_key: ScopedKeyFn = child_key,
    ):
        self.host = host
        self.settle_delay = settle_delay
        self.yield_every = max(1, yield_every)
        self.top_key = top_key
        self.nested_key = nested_key

    async def reconcile(
        self,
        parent_uid: str,
        desired: Sequence[BlockNode],
        existing: Sequence[ExistingNode] | None = None,
    ) -> ReconcileStats:
        """Make the blocks under ``parent_uid`` match ``desired``.

        Reads the existing subtree once (skipped when the caller already
        knows it, e.g. ``[]`` for a page it just created), then walks it
        level by level. Host errors propagate; whatever was written before
        the failure stays.
        """
        if existing is None:
            existing = await self.host.read_tree(parent_uid)
        run = _Run()
        await self._reconcile_level(parent_uid, existing, desired, None, run)
        logger.debug(f"Reconciled {parent_uid}: {run.stats.model_dump()}")
        return run.stats

    def _key_fn(self, scope: Scope | None) -> KeyFn:
        if scope is None:
            return self.top_key
        return lambda node: self.nested_key(node, scope)

    async def _reconcile_level(
        self,
        parent_uid: str,
        existing: Sequence[ExistingNode],
        desired: Sequence[BlockNode],
        scope: Scope | None,
        run: _Run,
    ) -> None:
        """One sibling level. ``scope`` is ``None`` at page level, else the section keys above."""
        key_fn = self._key_fn(scope)
        level = match_level(existing, desired, key_fn)

        placed: list[str] = []
        created: list[str] = []
        for node, match in level.pairs:
            await self._step(run)
            if match is None:
                uid = await self._create(parent_uid, node, run)
                created.append(uid)
            else:
                if match.text != node.text:
                    await self.host.update_node(match.uid, node.text)
                    await self._settle()
                    run.stats.updated += 1
                    logger.debug(f"Updated {match.uid}: {match.text!r} -> {node.text!r}")
                else:
                    run.stats.untouched += 1
                child_scope = () if scope is None else scope + (key_fn(node) or "",)
                await self._reconcile_level(match.uid, match.children, node.children, child_scope, run)
                uid = match.uid
            placed.append(uid)

        stale_uids = set()
        for node in level.stale:
            await self.host.delete_node(node.uid)
            await self._settle()
            run.stats.deleted += 1
            stale_uids.add(node.uid)
            logger.debug(f"Deleted {node.uid}: {node.text!r}")

        current = [n.uid for n in existing if n.uid not in stale_uids] + created
        for uid, order in plan_moves(current, placed):
            await self.host.move_node(uid, parent_uid, order)
            await self._settle()
            run.stats.moved += 1
            logger.debug(f"Moved {uid} to {order} under {parent_uid}")

    async def _create(self, parent_uid: str, node: BlockNode, run: _Run) -> str:
        uid = await self.host.create_node(parent_uid, node.text, "last")
        await self._settle()
        run.stats.created += 1
        logger.debug(f"Created {uid} under {parent_uid}: {node.text!r}")
        for child in node.children:
            await self._step(run)
            await self._create(uid, child, run)
        return uid

    async def _settle(self) -> None:
        await asyncio.sleep(self.settle_delay)

    async def _step(self, run: _Run) -> None:
        run.steps += 1
        if run.steps % self.yield_every == 0:
            await asyncio.sleep(0)
