"""Test the per-partition session actor, its transport and the protocol tools."""
import json

import pytest
from mcp.types import LATEST_PROTOCOL_VERSION

from gateway.domain.internal_request import InternalRequest
from gateway.domain.signing import sign_request
from gateway.services.jira_client import JiraClient
from gateway.session.actor import SessionActor
from gateway.session.registry import PartitionRegistry
from gateway.session.transport import SessionTransport
from tests.conftest import INITIALIZE_REQUEST, INITIALIZED_NOTIFICATION, JIRA_HEADERS

SECRET = "actor-test-secret"

ALICE = {
    "x-auth-user-id": "0190a000-0000-7000-8000-00000000000a",
    "x-auth-user-email": "alice@example.com",
    "x-auth-token-id": "0190a000-0000-7000-8000-0000000000a1",
}
BOB = {
    "x-auth-user-id": "0190a000-0000-7000-8000-00000000000b",
    "x-auth-user-email": "bob@example.com",
    "x-auth-token-id": "0190a000-0000-7000-8000-0000000000b1",
}

PROTOCOL_HEADERS = {
    "content-type": "application/json",
    "accept": "application/json, text/event-stream",
}


def signed(method="POST", body=None, session_id=None, headers=None, path="/mcp", query="", secret=SECRET):
    all_headers = {**PROTOCOL_HEADERS, **JIRA_HEADERS, **(headers or {})}
    if session_id:
        all_headers["mcp-session-id"] = session_id
    raw = body if isinstance(body, bytes) else (json.dumps(body).encode() if body is not None else b"")
    request = InternalRequest.build(method, path, query_string=query, headers=all_headers, body=raw)
    return sign_request(request, secret)


def rpc(method, request_id=2, **params):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params:
        message["params"] = params
    return message


@pytest.fixture
async def actor(fake_jira):
    actor = SessionActor("test-partition", lambda: SECRET, client_factory=fake_jira.client_factory)
    yield actor
    await actor.close_all()


async def start_session(actor: SessionActor, headers=None) -> str:
    """Initialize and complete the handshake; returns the session id."""
    response = await actor.handle(signed(body=INITIALIZE_REQUEST, headers=headers))
    assert response.status_code == 200, response.body
    session_id = response.headers["mcp-session-id"]

    response = await actor.handle(signed(body=INITIALIZED_NOTIFICATION, session_id=session_id, headers=headers))
    assert response.status_code == 202, response.body
    return session_id


@pytest.mark.unit
class TestHandshake:

    async def test_initialize_creates_session(self, actor: SessionActor, fake_jira):
        response = await actor.handle(signed(body=INITIALIZE_REQUEST, headers=ALICE))
        assert response.status_code == 200
        session_id = response.headers["mcp-session-id"]
        result = response.json_body()["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["serverInfo"]["name"] == "Jira MCP Server"
        assert "tools" in result["capabilities"]

        assert actor.get_session(session_id) is not None
        assert fake_jira.credentials[0].base_url == "https://client.atlassian.net"

    async def test_unknown_protocol_version_gets_latest(self, actor: SessionActor):
        body = {**INITIALIZE_REQUEST, "params": {**INITIALIZE_REQUEST["params"], "protocolVersion": "1999-01-01"}}
        response = await actor.handle(signed(body=body))
        assert response.json_body()["result"]["protocolVersion"] == LATEST_PROTOCOL_VERSION

    async def test_same_session_serves_subsequent_requests(self, actor: SessionActor):
        session_id = await start_session(actor, ALICE)
        record = actor.get_session(session_id)

        for request_id in (2, 3):
            response = await actor.handle(signed(body=rpc("ping", request_id), session_id=session_id, headers=ALICE))
            assert response.status_code == 200
            assert response.json_body() == {"jsonrpc": "2.0", "id": request_id, "result": {}}
            assert actor.get_session(session_id) is record

    async def test_session_id_from_query_parameter(self, actor: SessionActor):
        session_id = await start_session(actor)
        response = await actor.handle(signed(body=rpc("ping"), query=f"sessionId={session_id}"))
        assert response.status_code == 200

    async def test_initialize_without_credentials_400(self, actor: SessionActor):
        request = sign_request(
            InternalRequest.build("POST", "/mcp", headers=PROTOCOL_HEADERS, body=json.dumps(INITIALIZE_REQUEST).encode()),
            SECRET,
        )
        response = await actor.handle(request)
        assert response.status_code == 400
        assert response.json_body()["error"]["code"] == -32000
        assert actor.session_count == 0

    async def test_credentials_from_query_parameters(self, actor: SessionActor, fake_jira):
        query = "jiraBaseUrl=https%3A%2F%2Fquery.atlassian.net&jiraUsername=q%40example.com&jiraApiToken=query-token"
        request = sign_request(
            InternalRequest.build(
                "POST",
                "/mcp",
                query_string=query,
                headers=PROTOCOL_HEADERS,
                body=json.dumps(INITIALIZE_REQUEST).encode(),
            ),
            SECRET,
        )
        response = await actor.handle(request)
        assert response.status_code == 200
        assert fake_jira.credentials[0].base_url == "https://query.atlassian.net"
        assert fake_jira.credentials[0].api_token == "query-token"

    async def test_non_initialize_without_session_400(self, actor: SessionActor):
        response = await actor.handle(signed(body=rpc("tools/list")))
        assert response.status_code == 400
        assert response.json_body() == {
            "jsonrpc": "2.0",
            "error": {"code": -32000, "message": "Bad Request: No valid session ID provided"},
            "id": None,
        }

    async def test_failed_handshake_closes_jira_client(self, actor: SessionActor, monkeypatch):
        closed = []
        original_aclose = JiraClient.aclose

        async def recording_aclose(self):
            closed.append(self)
            await original_aclose(self)

        async def broken_handle(self, request):
            raise RuntimeError("transport failure")

        monkeypatch.setattr(JiraClient, "aclose", recording_aclose)
        monkeypatch.setattr(SessionTransport, "handle", broken_handle)

        response = await actor.handle(signed(body=INITIALIZE_REQUEST))
        assert response.status_code == 500
        assert response.json_body()["error"]["code"] == -32603
        assert len(closed) == 1
        assert actor.session_count == 0


@pytest.mark.unit
class TestRequestChecks:

    async def test_bad_signature_401(self, actor: SessionActor):
        response = await actor.handle(signed(body=INITIALIZE_REQUEST, secret="wrong-secret"))
        assert response.status_code == 401
        assert response.json_body()["error"]["code"] == -32002

    async def test_unsigned_401(self, actor: SessionActor):
        request = InternalRequest.build("POST", "/mcp", headers=JIRA_HEADERS, body=json.dumps(INITIALIZE_REQUEST).encode())
        response = await actor.handle(request)
        assert response.status_code == 401

    async def test_replayed_handshake_after_window_401(self, actor: SessionActor, frozen_clock):
        request = signed(body=INITIALIZE_REQUEST)

        frozen_clock.advance(seconds=121)
        response = await actor.handle(request)
        assert response.status_code == 401
        assert response.json_body()["error"]["code"] == -32002
        assert actor.session_count == 0

    async def test_handshake_inside_window_accepted(self, actor: SessionActor, frozen_clock):
        request = signed(body=INITIALIZE_REQUEST)

        frozen_clock.advance(seconds=119)
        response = await actor.handle(request)
        assert response.status_code == 200

    async def test_missing_secret_500(self, fake_jira):
        actor = SessionActor("p", lambda: None, client_factory=fake_jira.client_factory)
        response = await actor.handle(signed(body=INITIALIZE_REQUEST))
        assert response.status_code == 500
        assert response.json_body()["error"]["code"] == -32603

    async def test_other_path_404(self, actor: SessionActor):
        response = await actor.handle(signed(body=INITIALIZE_REQUEST, path="/elsewhere"))
        assert response.status_code == 404

    async def test_invalid_json_400(self, actor: SessionActor):
        response = await actor.handle(signed(body=b"{not json"))
        assert response.status_code == 400
        assert response.json_body()["error"]["code"] == -32700

    async def test_unknown_session_404(self, actor: SessionActor):
        response = await actor.handle(signed(body=rpc("ping"), session_id="does-not-exist"))
        assert response.status_code == 404
        error = response.json_body()["error"]
        assert error["code"] == -32001
        assert error["message"] == "Unknown or expired session ID. Re-run initialize to create a new session."

    async def test_other_owner_403(self, actor: SessionActor):
        session_id = await start_session(actor, ALICE)
        response = await actor.handle(signed(body=rpc("tools/list"), session_id=session_id, headers=BOB))
        assert response.status_code == 403
        assert response.json_body()["error"]["code"] == -32003
        assert "alice" not in response.body.decode()

    async def test_missing_claims_on_owned_session_403(self, actor: SessionActor):
        session_id = await start_session(actor, ALICE)
        response = await actor.handle(signed(body=rpc("tools/list"), session_id=session_id))
        assert response.status_code == 403

    async def test_email_is_not_part_of_ownership(self, actor: SessionActor):
        session_id = await start_session(actor, ALICE)
        renamed = {**ALICE, "x-auth-user-email": "alice.new@example.com"}
        response = await actor.handle(signed(body=rpc("ping"), session_id=session_id, headers=renamed))
        assert response.status_code == 200

    async def test_anonymous_session_accepts_any_caller(self, actor: SessionActor):
        session_id = await start_session(actor)
        response = await actor.handle(signed(body=rpc("ping"), session_id=session_id, headers=BOB))
        assert response.status_code == 200


@pytest.mark.unit
class TestTransport:

    async def test_notification_202(self, actor: SessionActor):
        response = await actor.handle(signed(body=INITIALIZE_REQUEST))
        session_id = response.headers["mcp-session-id"]

        response = await actor.handle(signed(body=INITIALIZED_NOTIFICATION, session_id=session_id))
        assert response.status_code == 202
        assert response.body == b""

    async def test_get_405(self, actor: SessionActor):
        session_id = await start_session(actor)
        response = await actor.handle(signed(method="GET", session_id=session_id))
        assert response.status_code == 405

    async def test_delete_closes_session(self, actor: SessionActor):
        session_id = await start_session(actor)
        response = await actor.handle(signed(method="DELETE", session_id=session_id))
        assert response.status_code == 200
        assert actor.get_session(session_id) is None

        response = await actor.handle(signed(body=rpc("ping"), session_id=session_id))
        assert response.status_code == 404
        assert response.json_body()["error"]["code"] == -32001


@pytest.mark.unit
class TestTools:

    async def call(self, actor, session_id, name, arguments=None):
        body = rpc("tools/call", name=name, arguments=arguments or {})
        response = await actor.handle(signed(body=body, session_id=session_id))
        assert response.status_code == 200
        return response.json_body()

    async def test_tools_list(self, actor: SessionActor):
        session_id = await start_session(actor)
        response = await actor.handle(signed(body=rpc("tools/list"), session_id=session_id))
        tools = {tool["name"]: tool for tool in response.json_body()["result"]["tools"]}
        assert set(tools) == {
            "get_projects",
            "get_issue",
            "search_issues",
            "add_comment",
            "get_issue_transitions",
            "transition_issue",
        }
        assert tools["get_issue"]["inputSchema"]["required"] == ["issueKey"]
        assert tools["get_projects"]["inputSchema"]["type"] == "object"

    async def test_get_projects(self, actor: SessionActor, fake_jira):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "get_projects")
        projects = json.loads(reply["result"]["content"][0]["text"])
        assert projects[0]["key"] == "PROJ"

        request = fake_jira.requests[-1]
        assert request.url.host == "client.atlassian.net"
        assert request.headers["authorization"].startswith("Basic ")

    async def test_get_issue(self, actor: SessionActor):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "get_issue", {"issueKey": "PROJ-7"})
        assert json.loads(reply["result"]["content"][0]["text"])["key"] == "PROJ-7"

    async def test_search_issues(self, actor: SessionActor, fake_jira):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "search_issues", {"jql": "project = PROJ", "maxResults": 5})
        assert json.loads(reply["result"]["content"][0]["text"])["jql"] == "project = PROJ"
        assert json.loads(fake_jira.requests[-1].content) == {"jql": "project = PROJ", "maxResults": 5}

    async def test_add_comment_sends_document(self, actor: SessionActor, fake_jira):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "add_comment", {"issueKey": "PROJ-1", "comment": "  Looks good  "})
        assert not reply["result"].get("isError")
        body = json.loads(fake_jira.requests[-1].content)
        assert body["body"]["type"] == "doc"
        assert body["body"]["content"][0]["content"][0]["text"] == "Looks good"

    async def test_transitions(self, actor: SessionActor, fake_jira):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "get_issue_transitions", {"issueKey": "PROJ-1"})
        assert json.loads(reply["result"]["content"][0]["text"])["transitions"][0]["id"] == "31"

        reply = await self.call(actor, session_id, "transition_issue", {"issueKey": "PROJ-1", "transitionId": "31"})
        assert reply["result"]["content"][0]["text"] == "Issue PROJ-1 transitioned using 31"
        assert json.loads(fake_jira.requests[-1].content) == {"transition": {"id": "31"}}

    async def test_jira_failure_is_error_result(self, actor: SessionActor):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "get_issue", {"issueKey": "MISSING-1"})
        assert reply["result"]["isError"] is True
        assert "Issue does not exist" in reply["result"]["content"][0]["text"]

    async def test_invalid_arguments_is_error_result(self, actor: SessionActor, fake_jira):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "get_issue", {})
        assert reply["result"]["isError"] is True
        assert fake_jira.requests == []

    async def test_unknown_tool_is_error_result(self, actor: SessionActor):
        session_id = await start_session(actor)
        reply = await self.call(actor, session_id, "delete_everything")
        assert reply["result"]["isError"] is True


@pytest.mark.unit
class TestRegistry:

    async def test_one_actor_per_partition(self, registry: PartitionRegistry):
        assert registry.get("a") is registry.get("a")
        assert registry.get("a") is not registry.get("b")

    async def test_partitions_are_isolated(self, fake_jira):
        registry = PartitionRegistry(lambda: SECRET, client_factory=fake_jira.client_factory)
        try:
            session_id = await start_session(registry.get("workspace:one"))

            response = await registry.get("workspace:two").handle(signed(body=rpc("ping"), session_id=session_id))
            assert response.status_code == 404

            response = await registry.get("workspace:one").handle(signed(body=rpc("ping"), session_id=session_id))
            assert response.status_code == 200
        finally:
            await registry.aclose()

    async def test_restart_discards_sessions(self, fake_jira):
        registry = PartitionRegistry(lambda: SECRET, client_factory=fake_jira.client_factory)
        try:
            session_id = await start_session(registry.get("p"))

            await registry.restart("p")
            assert "p" not in registry

            response = await registry.get("p").handle(signed(body=rpc("ping"), session_id=session_id))
            assert response.status_code == 404
        finally:
            await registry.aclose()
