# agents.py
# AI-agent mode: hand a prompt to an OpenAI-compatible model that decides for
# itself which server tools to call.
#
# The harness treats run_chat_agent() as a single black-box call. Tool calls
# requested by the model are routed through the same ToolChannel the rest of
# the load tester uses.

import json
import os
from typing import Any

from openai import AsyncOpenAI

from mcp_load_tester import display
from mcp_load_tester.channel import ToolChannel
from mcp_load_tester.errors import AgentError
from mcp_load_tester.models import AIClientConfig, ToolDescriptor

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

DEFAULT_MODELS = {
    "chatgpt": "gpt-4o-mini",
    "openrouter": "openai/gpt-4o-mini",
    "gemini": "gemini-2.5-flash",
}

# client -> (base URL, API key env var). A None base URL is the SDK default.
_PROVIDERS = {
    "chatgpt": (None, "OPENAI_API_KEY"),
    "openrouter": (OPENROUTER_BASE_URL, "OPENROUTER_API_KEY"),
    "gemini": (GEMINI_BASE_URL, "GEMINI_API_KEY"),
}

AGENT_SYSTEM_PROMPT = """\
You are an assistant with access to the tools of a remote server.
Call tools whenever they help answer the user's request, then reply with a \
concise final answer in plain text.\
"""


def tool_to_openai(tool: ToolDescriptor) -> dict[str, Any]:
    """Convert a ToolDescriptor into an OpenAI function-calling tool."""
    parameters = dict(tool.input_schema or {})
    parameters.setdefault("type", "object")
    parameters.setdefault("properties", {})
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description or "",
            "parameters": parameters,
        },
    }


def make_client(config: AIClientConfig) -> AsyncOpenAI:
    """
    Build the async client for the configured provider.

    Every provider speaks the OpenAI chat-completions API; they differ only
    in base URL and the environment variable holding the key.
    """
    base_url, key_env = _PROVIDERS[config.client]
    api_key = config.api_key or os.getenv(key_env)
    if not api_key:
        raise AgentError(f"api_key is required (set it in the config or {key_env})")
    return AsyncOpenAI(base_url=config.base_url or base_url, api_key=api_key)


async def _dispatch(channel: ToolChannel, name: str, arguments_raw: str | None) -> str:
    try:
        arguments = json.loads(arguments_raw or "{}")
    except json.JSONDecodeError as exc:
        return f"Error: arguments are not valid JSON ({exc})"

    display.agent_tool_call(name, arguments)
    result = await channel.call_tool(name, arguments)
    if result.is_error:
        return f"Error: {result.text}"
    return result.text


async def run_chat_agent(
    prompt: str,
    channel: ToolChannel,
    tools: list[ToolDescriptor],
    config: AIClientConfig,
    client: AsyncOpenAI | None = None,
) -> str:
    """
    Run one prompt to completion and return the model's final text.

    Raises AgentError if the model is still requesting tools after
    `config.max_turns` round trips.
    """
    client = client or make_client(config)
    display.agent_prompt(config.client, prompt)

    messages: list[dict[str, Any]] = [
        {"role": "system", "content": AGENT_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
    openai_tools = [tool_to_openai(tool) for tool in tools]

    for _ in range(config.max_turns):
        kwargs: dict[str, Any] = {"tools": openai_tools} if openai_tools else {}
        response = await client.chat.completions.create(
            model=config.model or DEFAULT_MODELS[config.client],
            messages=messages,
            **kwargs,
        )
        message = response.choices[0].message
        if not message.tool_calls:
            answer = (message.content or "").strip()
            display.agent_response(answer)
            return answer

        messages.append(
            {
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in message.tool_calls
                ],
            }
        )
        for call in message.tool_calls:
            observation = await _dispatch(channel, call.function.name, call.function.arguments)
            messages.append({"role": "tool", "tool_call_id": call.id, "content": observation})

    raise AgentError(f"Agent did not produce a final answer within {config.max_turns} turn(s)")
