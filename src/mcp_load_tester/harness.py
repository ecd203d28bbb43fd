# harness.py
# MCP load test harness.
#
# LoadTestClient owns all control flow: tool discovery, the per-iteration
# mode selection, the sequence step interpreter and metric recording. The
# channel is a passive responder, and context state is always passed in
# explicitly, never kept on the client.
#
# Control flow per iteration:
#   sequence?  → step loop (context in → tool call → output decode → context out)
#   run_all?   → every tool once
#   ai_client? → one agent prompt
#   otherwise  → one random tool
#
# All terminal output is delegated to display.py. No formatting here.

import asyncio
import copy
import json
import random
import time
from typing import Any, Awaitable, Callable, Sequence

from mcp_load_tester import display
from mcp_load_tester.agents import make_client, run_chat_agent
from mcp_load_tester.channel import MCPToolChannel, ToolChannel
from mcp_load_tester.context import ContextStore
from mcp_load_tester.errors import LoadTestError, OutputDecodeError, ToolApplicationError, ToolNotFoundError
from mcp_load_tester.metrics import MetricsAggregator
from mcp_load_tester.models import (
    ContextTransformStep,
    LoadTestConfig,
    MetricsSummary,
    ToolCallStep,
    ToolDescriptor,
    ToolResult,
    parse_steps,
)
from mcp_load_tester.synthesizer import ParameterSynthesizer, required_fields

SEQUENCE = "sequence"
RUN_ALL = "run_all"
AGENT = "agent"
RANDOM = "random"


def _coerce_steps(steps: Sequence[Any]) -> list[ToolCallStep | ContextTransformStep]:
    if all(isinstance(step, (ToolCallStep, ContextTransformStep)) for step in steps):
        return list(steps)
    return parse_steps(list(steps))


def _elapsed_ms(started: float, now: float) -> float:
    return (now - started) * 1000


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LoadTestClient:
    """
    Load test driver over a single tool channel.

    Example:
        client = LoadTestClient(MCPToolChannel(url), LoadTestConfig(server_url=url))
        await client.connect_to_server()
        summary = await client.run_load_test()
        await client.cleanup()
    """

    def __init__(
        self,
        channel: ToolChannel,
        config: LoadTestConfig,
        synthesizer: ParameterSynthesizer | None = None,
        metrics: MetricsAggregator | None = None,
        timer: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.channel = channel
        self.config = config
        self.synthesizer = synthesizer or ParameterSynthesizer(mock_config=config.mock_data)
        self.metrics = metrics or MetricsAggregator()
        self.tools: list[ToolDescriptor] = []
        self._timer = timer
        self._sleep = sleep
        self._agent_client = None

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def connect_to_server(self) -> None:
        """Connect and list tools. Connection failures are fatal."""
        await self.channel.connect()
        self.tools = await self.channel.list_tools()
        display.connected([tool.name for tool in self.tools])

    def find_tool(self, name: str) -> ToolDescriptor | None:
        return next((tool for tool in self.tools if tool.name == name), None)

    def available_tools(self) -> list[ToolDescriptor]:
        """Tools eligible for random / run-all / agent mode."""
        if self.config.tool_names:
            return [tool for tool in self.tools if tool.name in self.config.tool_names]
        return list(self.tools)

    # ------------------------------------------------------------------
    # Single call
    # ------------------------------------------------------------------

    async def _pause(self) -> None:
        if self.config.delay_between_calls > 0:
            await self._sleep(self.config.delay_between_calls / 1000)

    async def _invoke(
        self,
        tool_name: str,
        args: dict[str, Any],
        process: Callable[[ToolResult], Any] | None = None,
    ) -> Any:
        """
        One timed, recorded tool call.

        A result flagged isError is raised as ToolApplicationError, so it is
        recorded and propagated exactly like a transport failure. `process`
        runs on the result before the call is recorded; if it raises, the
        call is recorded as failed with that error. Returns the processed
        value, or the ToolResult itself when no `process` is given.
        """
        display.tool_call(tool_name, args)
        started = self._timer()
        duration = None
        try:
            result = await self.channel.call_tool(tool_name, args)
            duration = _elapsed_ms(started, self._timer())
            if result.is_error:
                raise ToolApplicationError(tool_name, result.text or f"Tool {tool_name!r} reported an error")
            output = process(result) if process is not None else result
        except Exception as exc:
            if duration is None:
                duration = _elapsed_ms(started, self._timer())
            self.metrics.record(tool_name, False, duration, error=exc, args=args)
            display.tool_error(tool_name, exc, duration)
            await self._pause()
            raise

        self.metrics.record(tool_name, True, duration, args=args, result=result.text)
        display.tool_result(tool_name, result.text, duration)
        await self._pause()
        return output

    async def call_tool(self, tool: ToolDescriptor) -> ToolResult:
        """Call `tool` with synthesized params and any configured overrides."""
        params: dict[str, Any] = {}
        if self.config.randomize_params:
            params = self.synthesizer.generate(tool.input_schema, self.config.mock_data)
        overrides = self.config.param_overrides.get(tool.name)
        if overrides:
            params = {**params, **overrides}
        return await self._invoke(tool.name, params)

    # ------------------------------------------------------------------
    # Sequence engine
    # ------------------------------------------------------------------

    def _build_step_args(self, step: ToolCallStep, tool: ToolDescriptor, context: ContextStore) -> dict[str, Any]:
        args = copy.deepcopy(step.static_inputs)
        if step.input_mapping:
            context.map_into(args, step.input_mapping, step.path_args)

        properties = tool.input_schema.get("properties") or {}
        for name in required_fields(tool.input_schema):
            if name not in args:
                args[name] = self.synthesizer.generate_value(name, properties[name], self.config.mock_data)
        return args

    @staticmethod
    def _decode_output(step: ToolCallStep, result: ToolResult) -> Any:
        raw = result.text
        if step.output_type == "text":
            return raw
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise OutputDecodeError(f"Output of {step.tool_name!r} is not valid JSON: {exc}") from exc

    async def _execute_tool_step(self, step: ToolCallStep, context: ContextStore) -> None:
        tool = self.find_tool(step.tool_name)
        if tool is None:
            # Authoring slip: record and move on to the next step.
            display.tool_not_found(step.tool_name)
            self.metrics.record(step.tool_name, False, 0, error=ToolNotFoundError(step.tool_name))
            return

        def store_output(result: ToolResult) -> None:
            output = self._decode_output(step, result)
            if step.output_mapping:
                context.map_from(output, step.output_mapping, step.path_args)

        try:
            try:
                args = self._build_step_args(step, tool, context)
            except LoadTestError as exc:
                # Malformed mapping or missing required path: nothing was sent.
                self.metrics.record(step.tool_name, False, 0, error=exc)
                raise
            await self._invoke(tool.name, args, process=store_output)
        except Exception as exc:
            display.sequence_aborted(step.tool_name, exc)
            raise

        if step.output_mapping:
            display.context_updated(list(step.output_mapping))

    async def execute_sequence(
        self,
        steps: Sequence[Any],
        context: ContextStore | None = None,
    ) -> ContextStore:
        """
        Run `steps` in order, threading data through `context`.

        A fresh ContextStore is created when none is given. Unknown tools are
        recorded and skipped; any other failure propagates and aborts the
        remaining steps. Returns the context.
        """
        steps = _coerce_steps(steps)
        context = context if context is not None else ContextStore()
        total = len(steps)
        display.sequence_start(total)

        for index, step in enumerate(steps):
            if isinstance(step, ContextTransformStep):
                display.step_start(index, total, "context transform")
                context.transform(step.input_mapping, step.path_args)
                display.context_transformed(list(step.input_mapping))
                continue

            display.step_start(index, total, step.tool_name)
            await self._execute_tool_step(step, context)

        return context

    # ------------------------------------------------------------------
    # Driver modes
    # ------------------------------------------------------------------

    async def run_random_tool_call(self) -> ToolResult:
        tool = random.choice(self.available_tools())
        return await self.call_tool(tool)

    async def run_all(self) -> None:
        """Call every available tool once. One failing tool does not stop the rest."""
        for tool in self.available_tools():
            try:
                await self.call_tool(tool)
            except Exception:
                # Already recorded and displayed by _invoke.
                continue

    async def run_ai_client(self) -> str:
        """One black-box agent run, recorded as a single call."""
        config = self.config.ai_client
        name = f"ai:{config.client}"
        started = self._timer()
        try:
            if self._agent_client is None:
                self._agent_client = make_client(config)
            answer = await run_chat_agent(
                config.prompt,
                self.channel,
                self.available_tools(),
                config,
                client=self._agent_client,
            )
        except Exception as exc:
            duration = _elapsed_ms(started, self._timer())
            self.metrics.record(name, False, duration, error=exc, args={"prompt": config.prompt})
            await self._pause()
            raise

        duration = _elapsed_ms(started, self._timer())
        self.metrics.record(name, True, duration, args={"prompt": config.prompt}, result=answer)
        await self._pause()
        return answer

    def mode(self) -> str:
        if self.config.sequence is not None:
            return SEQUENCE
        if self.config.run_all:
            return RUN_ALL
        if self.config.ai_client is not None:
            return AGENT
        return RANDOM

    async def run_load_test(self) -> MetricsSummary:
        """
        Run `num_calls` iterations of the configured mode.

        Never raises: per-iteration failures are displayed and the loop moves
        on. The summary is printed and returned in all cases.
        """
        config = self.config
        mode = self.mode()

        if not self.tools:
            display.no_tools("No tools available")
            return self.metrics.print_summary()
        if mode != SEQUENCE and not self.available_tools():
            display.no_tools("No matching tools found")
            return self.metrics.print_summary()

        display.load_test_start(config.num_calls, mode)
        # One context for the whole run; sequence iterations build on it.
        context = ContextStore()

        for index in range(config.num_calls):
            display.iteration_start(index, config.num_calls)
            try:
                if mode == SEQUENCE:
                    await self.execute_sequence(config.sequence, context)
                elif mode == RUN_ALL:
                    await self.run_all()
                elif mode == AGENT:
                    await self.run_ai_client()
                else:
                    await self.run_random_tool_call()
            except Exception as exc:
                display.iteration_failed(index, config.num_calls, exc)

        return self.metrics.print_summary()

    async def cleanup(self) -> None:
        await self.channel.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def run(config: LoadTestConfig | dict[str, Any], channel: ToolChannel | None = None) -> MetricsSummary:
    """
    Connect, run the load test and clean up.

    Connection failures propagate; everything after a successful connect
    ends in a returned MetricsSummary.
    """
    if not isinstance(config, LoadTestConfig):
        config = LoadTestConfig.model_validate(config)

    channel = channel or MCPToolChannel(config.server_url, config.headers)
    client = LoadTestClient(channel, config)
    display.banner(config.server_url, client.mode(), config.num_calls)

    try:
        await client.connect_to_server()
        return await client.run_load_test()
    finally:
        await client.cleanup()
