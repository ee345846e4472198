"""Model Context Protocol server exposing Jira tools.

``create_server`` builds one low-level SDK server per session, bound to that
session's Jira client.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import mcp.types as types
from mcp.server.lowlevel import Server
from pydantic import BaseModel, Field

from gateway.services.jira_client import DEFAULT_MAX_RESULTS, JiraClient

logger = logging.getLogger(__name__)


SERVER_NAME = "Jira MCP Server"
SERVER_VERSION = "0.1.0"


class NoArguments(BaseModel):
    pass


class IssueKeyArguments(BaseModel):
    issueKey: str = Field(..., min_length=1, description="The Jira issue key (e.g., PROJ-123)")


class SearchIssuesArguments(BaseModel):
    jql: str = Field(..., min_length=1, description="JQL query string")
    maxResults: int = Field(DEFAULT_MAX_RESULTS, ge=1, le=100, description="Maximum number of issues to return")


class AddCommentArguments(IssueKeyArguments):
    comment: str = Field(..., min_length=1, description="The text of the comment to add to the issue")


class TransitionIssueArguments(IssueKeyArguments):
    transitionId: str = Field(
        ...,
        min_length=1,
        description="The transition ID to apply (use get_issue_transitions to discover IDs)",
    )


ToolHandler = Callable[[JiraClient, Any], Awaitable[str]]


@dataclass(frozen=True)
class JiraTool:
    name: str
    description: str
    arguments: type[BaseModel]
    handler: ToolHandler

    def definition(self) -> types.Tool:
        schema = self.arguments.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return types.Tool(name=self.name, description=self.description, inputSchema=schema)


def _json_text(value: Any) -> str:
    return json.dumps(value, indent=2)


async def _get_projects(client: JiraClient, arguments: NoArguments) -> str:
    return _json_text(await client.get_projects())


async def _get_issue(client: JiraClient, arguments: IssueKeyArguments) -> str:
    return _json_text(await client.get_issue(arguments.issueKey))


async def _search_issues(client: JiraClient, arguments: SearchIssuesArguments) -> str:
    return _json_text(await client.search_issues(arguments.jql, arguments.maxResults))


async def _add_comment(client: JiraClient, arguments: AddCommentArguments) -> str:
    return _json_text(await client.add_comment(arguments.issueKey, arguments.comment))


async def _get_issue_transitions(client: JiraClient, arguments: IssueKeyArguments) -> str:
    return _json_text(await client.get_issue_transitions(arguments.issueKey))


async def _transition_issue(client: JiraClient, arguments: TransitionIssueArguments) -> str:
    await client.transition_issue(arguments.issueKey, arguments.transitionId)
    return f"Issue {arguments.issueKey} transitioned using {arguments.transitionId}"


TOOLS = {
    tool.name: tool
    for tool in (
        JiraTool("get_projects", "Get list of available Jira projects", NoArguments, _get_projects),
        JiraTool("get_issue", "Get detailed information about a Jira issue", IssueKeyArguments, _get_issue),
        JiraTool("search_issues", "Search Jira issues with a JQL query", SearchIssuesArguments, _search_issues),
        JiraTool("add_comment", "Add a comment to an existing Jira issue", AddCommentArguments, _add_comment),
        JiraTool(
            "get_issue_transitions",
            "List available workflow transitions for an issue",
            IssueKeyArguments,
            _get_issue_transitions,
        ),
        JiraTool(
            "transition_issue",
            "Move an issue to a different status by applying a workflow transition",
            TransitionIssueArguments,
            _transition_issue,
        ),
    )
}


def create_server(client: JiraClient) -> Server:
    """Build a protocol server whose tools call Jira through ``client``.

    Exceptions raised by a tool (unknown name, invalid arguments, Jira
    errors) are turned into ``isError`` results by the SDK.
    """
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [tool.definition() for tool in TOOLS.values()]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        tool = TOOLS.get(name)
        if tool is None:
            raise ValueError(f"Unknown tool: {name}")

        parsed = tool.arguments.model_validate(arguments or {})
        try:
            text = await tool.handler(client, parsed)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            raise

        return [types.TextContent(type="text", text=text)]

    return server
