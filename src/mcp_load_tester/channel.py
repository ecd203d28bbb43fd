# channel.py
# Tool channel: the boundary between the load tester and the MCP server.
#
# The harness only ever sees ToolDescriptor and ToolResult. MCPToolChannel
# adapts the mcp SDK's streamable-HTTP client to that shape.

from contextlib import AsyncExitStack
from typing import Any, Protocol

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from mcp_load_tester import display
from mcp_load_tester.models import ContentItem, ToolDescriptor, ToolResult


class ToolChannel(Protocol):
    async def connect(self) -> None: ...

    async def list_tools(self) -> list[ToolDescriptor]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult: ...

    async def close(self) -> None: ...


def _normalise_result(result: Any) -> ToolResult:
    """Convert an mcp CallToolResult into a ToolResult."""
    items = [
        ContentItem(type=getattr(block, "type", "text"), text=getattr(block, "text", None))
        for block in getattr(result, "content", None) or []
    ]
    return ToolResult(content=items, is_error=bool(getattr(result, "isError", False)))


class MCPToolChannel:
    """
    Streamable-HTTP MCP client session.

    Example:
        channel = MCPToolChannel("http://localhost:8080/mcp")
        await channel.connect()
        tools = await channel.list_tools()
        result = await channel.call_tool("echo", {"message": "hi"})
        await channel.close()
    """

    def __init__(self, server_url: str, headers: dict[str, str] | None = None) -> None:
        self._server_url = server_url
        self._headers = dict(headers or {})
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None

    async def connect(self) -> None:
        stack = AsyncExitStack()
        try:
            read, write, _ = await stack.enter_async_context(
                streamablehttp_client(self._server_url, headers=self._headers or None)
            )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception as exc:
            await stack.aclose()
            display.connect_failed(self._server_url, exc)
            raise
        self._stack = stack
        self._session = session

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError("Channel is not connected. Call connect() first.")
        return self._session

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self._require_session().list_tools()
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description,
                input_schema=tool.inputSchema or {},
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        result = await self._require_session().call_tool(name, arguments)
        return _normalise_result(result)

    async def close(self) -> None:
        if self._stack is not None:
            stack, self._stack, self._session = self._stack, None, None
            await stack.aclose()
