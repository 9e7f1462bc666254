"""Roam Research backend API client: the host document store.

Only the calls the sync needs: find/create a page, read a block subtree,
and create/update/delete/move single blocks. The backend API has no
batch or transactional write, so every mutation is its own request.
"""

import json
import logging
import secrets
import string
from typing import Any

import httpx

from ..models import ExistingNode, NetworkError, NotFoundError, RoamConfiguration
from .base import APIClientBase

logger = logging.getLogger(__name__)

UID_ALPHABET = string.ascii_letters + string.digits + "-_"
UID_LENGTH = 9

TREE_SELECTOR = "[:block/uid :block/string :block/order {:block/children ...}]"
PAGE_BY_TITLE_QUERY = "[:find ?uid . :in $ ?title :where [?p :node/title ?title] [?p :block/uid ?uid]]"


def generate_uid() -> str:
    """Random 9-character uid in the alphabet Roam uses for blocks."""
    return "".join(secrets.choice(UID_ALPHABET) for _ in range(UID_LENGTH))


def parse_tree(raw_children: list[dict[str, Any]] | None) -> list[ExistingNode]:
    """Turn pulled ``:block/children`` entries into ordered ``ExistingNode``s."""
    nodes = [
        ExistingNode(
            uid=child.get(":block/uid", ""),
            text=child.get(":block/string") or "",
            order=child.get(":block/order") or 0,
            children=parse_tree(child.get(":block/children")),
        )
        for child in raw_children or []
    ]
    return sorted(nodes, key=lambda n: n.order)


class RoamClient(APIClientBase):
    """Async client for ``/api/graph/{graph}/{q,pull,write}``."""

    def __init__(self, config: RoamConfiguration, transport: httpx.AsyncBaseTransport | None = None, base_delay: float = 1.0):
        super().__init__(transport=transport, base_delay=base_delay)
        self.config = config
        self.base_url = config.graph_url
        self.timeout = config.timeout
        self.max_retries = config.max_retries

    @property
    def headers(self) -> dict[str, str]:
        token = self.config.token.get_secret_value()
        return {
            "Authorization": f"Bearer {token}",
            # httpx drops Authorization when the API redirects to a peer host
            "x-authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _already_applied(self, error: NetworkError) -> bool:
        # Creates carry our own uid, so a replay of one that landed is rejected as a duplicate
        return "already exists" in str(error).lower()

    async def q(self, query: str, *args: Any) -> Any:
        data = await self._request("POST", "/q", "q", json={"query": query, "args": list(args)})
        return data.get("result")

    async def pull(self, eid: str, selector: str) -> dict[str, Any] | None:
        data = await self._request("POST", "/pull", "pull", json={"eid": eid, "selector": selector})
        return data.get("result")

    async def write(self, action: dict[str, Any]) -> None:
        await self._request("POST", "/write", action["action"], json=action)

    async def find_page(self, title: str) -> str | None:
        """Uid of the page with this exact title, if it exists."""
        result = await self.q(PAGE_BY_TITLE_QUERY, title)
        if isinstance(result, list):
            # Some peers return the relation form even for scalar finds
            result = result[0][0] if result and result[0] else None
        return result or None

    async def create_page(self, title: str) -> str:
        uid = generate_uid()
        await self.write({"action": "create-page", "page": {"title": title, "uid": uid}})
        logger.info(f"Created page {title!r} ({uid})")
        return uid

    async def read_tree(self, uid: str) -> list[ExistingNode]:
        """Full ordered subtree below ``uid`` (the node itself excluded)."""
        result = await self.pull(f"[:block/uid {json.dumps(uid)}]", TREE_SELECTOR)
        if result is None:
            raise NotFoundError(uid, "Block or page not found")
        return parse_tree(result.get(":block/children"))

    async def create_node(self, parent_uid: str, text: str, order: int | str = "last") -> str:
        uid = generate_uid()
        await self.write({
            "action": "create-block",
            "location": {"parent-uid": parent_uid, "order": order},
            "block": {"string": text, "uid": uid},
        })
        return uid

    async def update_node(self, uid: str, text: str) -> None:
        await self.write({"action": "update-block", "block": {"uid": uid, "string": text}})

    async def delete_node(self, uid: str) -> None:
        await self.write({"action": "delete-block", "block": {"uid": uid}})

    async def move_node(self, uid: str, parent_uid: str, order: int | str) -> None:
        if order != "last" and not isinstance(order, int):
            raise ValueError(f"Invalid move order: {order!r}")
        await self.write({
            "action": "move-block",
            "location": {"parent-uid": parent_uid, "order": order},
            "block": {"uid": uid},
        })
