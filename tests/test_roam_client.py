import asyncio
import json

import httpx
import pytest
from pydantic import SecretStr

from ouraring_sync.client import RoamClient
from ouraring_sync.client.roam import UID_ALPHABET, UID_LENGTH, generate_uid, parse_tree
from ouraring_sync.models import NetworkError, NotFoundError, RoamConfiguration


class Recorder:
    """MockTransport handler that records JSON bodies and replays canned results."""

    def __init__(self, results=None):
        self.requests = []
        self.results = list(results or [])

    def __call__(self, request):
        self.requests.append((request.url.path, json.loads(request.content), request.headers))
        if self.results:
            return httpx.Response(200, json={"result": self.results.pop(0)})
        return httpx.Response(200)

    @property
    def bodies(self):
        return [body for _, body, _ in self.requests]


def call(recorder, method, *args):
    config = RoamConfiguration(graph="my-graph", token=SecretStr("roam-token"), max_retries=2)
    client = RoamClient(config, transport=httpx.MockTransport(recorder), base_delay=0)

    async def scenario():
        async with client:
            return await getattr(client, method)(*args)

    return asyncio.run(scenario())


def test_generated_uids():
    uid = generate_uid()
    assert len(uid) == UID_LENGTH
    assert set(uid) <= set(UID_ALPHABET)


def test_parse_tree_sorts_by_order():
    nodes = parse_tree([
        {":block/uid": "b", ":block/string": "Second", ":block/order": 1},
        {":block/uid": "a", ":block/string": "First", ":block/order": 0, ":block/children": [
            {":block/uid": "c", ":block/order": 0},
        ]},
    ])

    assert [n.uid for n in nodes] == ["a", "b"]
    assert nodes[0].children[0].text == ""


class TestReads:
    def test_find_page(self):
        recorder = Recorder(["page-uid"])

        assert call(recorder, "find_page", "ouraring/2025-06-01") == "page-uid"
        path, body, headers = recorder.requests[0]
        assert path == "/api/graph/my-graph/q"
        assert body["args"] == ["ouraring/2025-06-01"]
        assert headers["Authorization"] == headers["x-authorization"] == "Bearer roam-token"

    def test_find_missing_page(self):
        assert call(Recorder([None]), "find_page", "nope") is None

    def test_find_page_relation_result(self):
        assert call(Recorder([[["page-uid"]]]), "find_page", "p") == "page-uid"

    def test_read_tree(self):
        recorder = Recorder([{":block/uid": "page", ":block/children": [
            {":block/uid": "x", ":block/string": "Sleep", ":block/order": 0, ":block/children": [
                {":block/uid": "y", ":block/string": "Score: 82", ":block/order": 0},
            ]},
        ]}])

        tree = call(recorder, "read_tree", "page")

        assert tree[0].text == "Sleep"
        assert tree[0].children[0].uid == "y"
        assert recorder.bodies[0]["eid"] == '[:block/uid "page"]'
        assert recorder.requests[0][0] == "/api/graph/my-graph/pull"

    def test_read_tree_missing_block(self):
        with pytest.raises(NotFoundError):
            call(Recorder([None]), "read_tree", "gone")


class TestWrites:
    def test_create_page(self):
        recorder = Recorder()

        uid = call(recorder, "create_page", "ouraring/2025-06-01")

        assert recorder.bodies == [{"action": "create-page", "page": {"title": "ouraring/2025-06-01", "uid": uid}}]
        assert recorder.requests[0][0] == "/api/graph/my-graph/write"

    def test_create_node(self):
        recorder = Recorder()

        uid = call(recorder, "create_node", "parent", "Sleep")

        assert recorder.bodies == [{
            "action": "create-block",
            "location": {"parent-uid": "parent", "order": "last"},
            "block": {"string": "Sleep", "uid": uid},
        }]

    def test_update_delete_move(self):
        recorder = Recorder()

        call(recorder, "update_node", "abc", "Score: 82")
        call(recorder, "delete_node", "abc")
        call(recorder, "move_node", "abc", "parent", 2)

        assert recorder.bodies == [
            {"action": "update-block", "block": {"uid": "abc", "string": "Score: 82"}},
            {"action": "delete-block", "block": {"uid": "abc"}},
            {"action": "move-block", "location": {"parent-uid": "parent", "order": 2}, "block": {"uid": "abc"}},
        ]

    def test_move_rejects_bad_order(self):
        with pytest.raises(ValueError):
            call(Recorder(), "move_node", "abc", "parent", "first")

    def test_host_error_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Parent not found"})

        config = RoamConfiguration(graph="g", token=SecretStr("t"), max_retries=1)
        client = RoamClient(config, transport=httpx.MockTransport(handler), base_delay=0)

        async def scenario():
            async with client:
                await client.update_node("abc", "x")

        with pytest.raises(NetworkError, match="Parent not found"):
            asyncio.run(scenario())


class TestReplayedWrites:
    def make_client(self, handler, retries=2):
        config = RoamConfiguration(graph="g", token=SecretStr("t"), max_retries=retries)
        return RoamClient(config, transport=httpx.MockTransport(handler), base_delay=0)

    def test_retry_of_landed_create_succeeds(self):
        uids = []

        def handler(request):
            uids.append(json.loads(request.content)["block"]["uid"])
            if len(uids) == 1:
                return httpx.Response(503)
            return httpx.Response(400, json={"message": f"Block with uid {uids[-1]} already exists"})

        client = self.make_client(handler)

        async def scenario():
            async with client:
                return await client.create_node("parent", "Sleep")

        uid = asyncio.run(scenario())

        assert uids == [uid, uid]

    def test_duplicate_on_first_attempt_still_fails(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Block with uid abc already exists"})

        client = self.make_client(handler, retries=1)

        async def scenario():
            async with client:
                await client.create_node("parent", "Sleep")

        with pytest.raises(NetworkError, match="already exists"):
            asyncio.run(scenario())
