"""Tests for the Graph client and the Graph-backed directory client."""

import httpx
import pytest

from entra_group_inventory.config import GraphSettings
from entra_group_inventory.directory.client import (
    DirectoryAccessError,
    DirectoryError,
    GraphDirectoryClient,
    GroupNotFoundError,
    flags_from_graph,
)
from entra_group_inventory.graph.client import GraphAPIError, GraphClient
from entra_group_inventory.inventory import HierarchyExpander
from entra_group_inventory.models import ObjectType
from entra_group_inventory.safety.guardian import SafetyGuardian, SafetyViolation

BASE = "https://graph.microsoft.com/v1.0"


def _client(handler, **settings) -> GraphClient:
    return GraphClient(
        "token-123",
        SafetyGuardian(),
        settings=GraphSettings(**settings),
        transport=httpx.MockTransport(handler),
    )


class TestGraphClient:

    @pytest.mark.asyncio
    async def test_get_sends_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "g1", "displayName": "Group 1"})

        async with _client(handler) as graph:
            data = await graph.get("groups/g1", params={"$select": "id"})

        assert data["displayName"] == "Group 1"
        assert seen[0].headers["Authorization"] == "Bearer token-123"
        assert seen[0].url.path == "/v1.0/groups/g1"

    @pytest.mark.asyncio
    async def test_not_found_and_forbidden_are_flagged(self):
        def handler(request):
            if request.url.path.endswith("/missing"):
                return httpx.Response(404, json={"error": {"message": "nope"}})
            return httpx.Response(403, json={"error": {"message": "Insufficient privileges"}})

        async with _client(handler) as graph:
            missing = await graph.get("groups/missing")
            denied = await graph.get("groups/secret")

        assert missing["_not_found"] is True
        assert denied["_forbidden"] is True
        assert denied["_error_message"] == "Insufficient privileges"

    @pytest.mark.asyncio
    async def test_pagination_follows_next_link_in_order(self):
        pages = {
            "/v1.0/groups/g1/members": {
                "value": [{"id": "1"}, {"id": "2"}],
                "@odata.nextLink": f"{BASE}/groups/g1/members?$skiptoken=abc",
            },
        }
        requests = []

        def handler(request):
            requests.append(request)
            if "skiptoken" in str(request.url):
                return httpx.Response(200, json={"value": [{"id": "3"}]})
            return httpx.Response(200, json=pages[request.url.path])

        async with _client(handler, page_size=2) as graph:
            items = await graph.get_all_pages("groups/g1/members")

        assert [i["id"] for i in items] == ["1", "2", "3"]
        assert requests[0].url.params["$top"] == "2"
        assert "$top" not in requests[1].url.params

    @pytest.mark.asyncio
    async def test_paged_forbidden_raises(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "denied"}})

        async with _client(handler) as graph:
            with pytest.raises(GraphAPIError) as exc:
                await graph.get_all_pages("groups/g1/owners")
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_throttling_is_not_retried_by_default(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "0"})

        async with _client(handler) as graph:
            with pytest.raises(GraphAPIError) as exc:
                await graph.get("groups/g1")

        assert exc.value.status_code == 429
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_throttling_retried_when_configured(self):
        responses = [
            httpx.Response(503, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"id": "g1"}),
        ]

        def handler(request):
            return responses.pop(0)

        async with _client(handler, max_retries=1, initial_backoff_seconds=0) as graph:
            data = await graph.get("groups/g1")
            stats = graph.get_stats()

        assert data == {"id": "g1"}
        assert stats == {"total_requests": 2, "throttle_events": 1}

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "boom"}})

        async with _client(handler) as graph:
            with pytest.raises(GraphAPIError, match="boom"):
                await graph.get("groups/g1")

    @pytest.mark.asyncio
    async def test_undecodable_body_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway glitch</html>")

        async with _client(handler) as graph:
            with pytest.raises(GraphAPIError, match="Invalid JSON body") as exc:
                await graph.get("groups/g1")
        assert exc.value.status_code == 200

    @pytest.mark.asyncio
    async def test_out_of_scope_endpoint_is_blocked(self):
        def handler(request):
            raise AssertionError("request should never be sent")

        async with _client(handler) as graph:
            with pytest.raises(SafetyViolation):
                await graph.get("users")

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        graph = _client(lambda r: httpx.Response(200, json={}))
        with pytest.raises(RuntimeError):
            await graph.get("groups/g1")


class TestGraphDirectoryClient:

    @pytest.mark.asyncio
    async def test_resolves_group_and_flags(self):
        def handler(request):
            return httpx.Response(200, json={
                "id": "g1",
                "displayName": "Sales",
                "groupTypes": ["Unified"],
                "mailEnabled": True,
                "securityEnabled": False,
            })

        async with _client(handler) as graph:
            directory = GraphDirectoryClient(graph)
            node = await directory.resolve_group("g1")
            flags = await directory.resolve_group_type_flags("g1")

        assert node.id == "g1"
        assert node.display_name == "Sales"
        assert flags.is_unified and flags.mail_enabled and not flags.security_enabled

    @pytest.mark.asyncio
    async def test_lists_typed_members(self):
        def handler(request):
            return httpx.Response(200, json={"value": [
                {"@odata.type": "#microsoft.graph.user", "id": "u1",
                 "userPrincipalName": "u1@x.com"},
                {"@odata.type": "#microsoft.graph.group", "id": "g2"},
                {"@odata.type": "#microsoft.graph.device", "id": "d1"},
            ]})

        async with _client(handler) as graph:
            members = await GraphDirectoryClient(graph).list_members("g1")

        assert [(m.id, m.object_type) for m in members] == [
            ("u1", ObjectType.USER),
            ("g2", ObjectType.GROUP),
            ("d1", ObjectType.OTHER),
        ]
        assert members[0].principal_name == "u1@x.com"
        assert members[1].principal_name is None

    @pytest.mark.asyncio
    async def test_missing_group_raises_not_found(self):
        async with _client(lambda r: httpx.Response(404)) as graph:
            with pytest.raises(GroupNotFoundError):
                await GraphDirectoryClient(graph).resolve_group("gone")

    @pytest.mark.asyncio
    async def test_forbidden_owners_raise_access_error(self):
        async with _client(lambda r: httpx.Response(403)) as graph:
            with pytest.raises(DirectoryAccessError):
                await GraphDirectoryClient(graph).list_owners("g1")

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_directory_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as graph:
            with pytest.raises(DirectoryError):
                await GraphDirectoryClient(graph).list_members("g1")

    def test_unified_marker_is_case_insensitive(self):
        assert flags_from_graph({"groupTypes": ["unified"]}).is_unified
        assert not flags_from_graph({"groupTypes": ["DynamicMembership"]}).is_unified
        assert not flags_from_graph({"groupTypes": None}).is_unified

    @pytest.mark.asyncio
    async def test_undecodable_body_becomes_directory_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway glitch</html>")

        async with _client(handler) as graph:
            directory = GraphDirectoryClient(graph)
            with pytest.raises(DirectoryError):
                await directory.resolve_group("g1")
            with pytest.raises(DirectoryError):
                await directory.list_members("g1")

    @pytest.mark.asyncio
    async def test_group_id_is_escaped_in_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "abc/members", "displayName": "Odd"})

        async with _client(handler) as graph:
            node = await GraphDirectoryClient(graph).resolve_group("abc/members")

        assert node.display_name == "Odd"
        assert seen[0].url.raw_path.startswith(b"/v1.0/groups/abc%2Fmembers?")


class TestExpansionOverGraph:

    @pytest.mark.asyncio
    async def test_garbled_child_response_skips_only_that_child(self):
        groups = {
            "S": {"id": "S", "displayName": "Seed", "securityEnabled": True,
                  "mailEnabled": False, "groupTypes": []},
            "OK": {"id": "OK", "displayName": "Healthy", "securityEnabled": False,
                   "mailEnabled": True, "groupTypes": []},
        }
        members = [
            {"@odata.type": "#microsoft.graph.group", "id": "BAD"},
            {"@odata.type": "#microsoft.graph.group", "id": "OK"},
        ]

        def handler(request):
            parts = request.url.path.split("/")[2:]
            group_id = parts[1]
            if group_id == "BAD":
                return httpx.Response(200, text="<html>gateway glitch</html>")
            if len(parts) == 2:
                return httpx.Response(200, json=groups[group_id])
            if group_id == "S" and parts[2] == "members":
                return httpx.Response(200, json={"value": members})
            return httpx.Response(200, json={"value": []})

        async with _client(handler) as graph:
            expander = HierarchyExpander(GraphDirectoryClient(graph))
            rows = await expander.expand("S")

        assert [r.group_id for r in rows] == ["S", "OK"]
        assert expander.stats.groups_skipped == 1
