import json

import pytest

from mcp_load_tester import display
from mcp_load_tester.models import ContentItem, ToolDescriptor, ToolResult


class FakeChannel:
    """
    In-memory ToolChannel.

    `responses` maps tool name to one of: an exception (raised), a ToolResult
    (returned as-is), a callable taking the arguments, or any JSON value
    (returned as the text of a single content item).
    """

    def __init__(self, tools=None, responses=None, default=None):
        self.tools = list(tools or [])
        self.responses = dict(responses or {})
        self.default = default if default is not None else {"ok": True}
        self.calls = []
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    async def list_tools(self):
        return list(self.tools)

    async def call_tool(self, name, arguments):
        self.calls.append((name, dict(arguments)))
        response = self.responses.get(name, self.default)
        if callable(response) and not isinstance(response, type):
            response = response(arguments)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, ToolResult):
            return response
        text = response if isinstance(response, str) else json.dumps(response)
        return ToolResult(content=[ContentItem(text=text)])

    async def close(self):
        self.closed = True


def make_tool(name, properties=None, required=None):
    schema = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = list(required)
    return ToolDescriptor(name=name, input_schema=schema)


@pytest.fixture(autouse=True)
def quiet_display():
    display.set_quiet(True)
    yield
    display.set_quiet(False)


@pytest.fixture
def fake_channel():
    return FakeChannel


@pytest.fixture
def tool():
    return make_tool
