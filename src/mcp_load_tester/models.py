# models.py
# Data contracts for the load tester.
# No business logic lives here, only schema and validation.
#
# Config-facing models accept snake_case names and the camelCase aliases used
# by JSON config files (toolName, inputMapping, numCalls, ...).

from typing import Annotated, Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Tool channel
# ---------------------------------------------------------------------------


class ToolDescriptor(_ConfigModel):
    """A tool advertised by the server. Immutable for the run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=dict)


class ContentItem(BaseModel):
    type: str = "text"
    text: str | None = None


class ToolResult(_ConfigModel):
    """Channel-normalised result of a single tool call."""

    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool = False

    @property
    def text(self) -> str:
        """Text payload of the first content item, or '' when there is none."""
        if not self.content:
            return ""
        return self.content[0].text or ""


# ---------------------------------------------------------------------------
# Sequence steps
# ---------------------------------------------------------------------------


class PathOptions(_ConfigModel):
    """Evaluation options applied to every path expression of a step."""

    required: bool = Field(default=False, description="Missing exact-path matches raise.")
    unwrap: bool = Field(default=False, description="Collapse single-element wildcard matches.")


class ToolCallStep(_ConfigModel):
    """Invoke a tool, threading inputs from and outputs into the context."""

    type: Literal["tool_call"] = "tool_call"
    tool_name: str = Field(..., description="Must match a tool advertised by the server.")
    static_inputs: dict[str, Any] = Field(default_factory=dict)
    input_mapping: dict[str, Any] = Field(default_factory=dict)
    output_mapping: dict[str, Any] = Field(default_factory=dict)
    output_type: Literal["json", "text"] = "json"
    path_args: PathOptions = Field(default_factory=PathOptions)

    @field_validator("output_mapping", mode="before")
    @classmethod
    def _whole_output(cls, value: Any) -> Any:
        # A bare string stores the whole output under that key.
        if isinstance(value, str):
            return {value: "$"}
        return value


class ContextTransformStep(_ConfigModel):
    """Reshape the context in place without calling a tool."""

    type: Literal["context_transform"] = "context_transform"
    input_mapping: dict[str, Any]
    path_args: PathOptions = Field(default_factory=PathOptions)


SequenceStep = Annotated[Union[ToolCallStep, ContextTransformStep], Field(discriminator="type")]

_steps_adapter = TypeAdapter(list[SequenceStep])


def _tag_step(raw: Any) -> Any:
    # Config files written for the untagged format carry only toolName.
    if isinstance(raw, dict) and "type" not in raw and ("toolName" in raw or "tool_name" in raw):
        return {**raw, "type": "tool_call"}
    return raw


def parse_steps(raw: list[Any]) -> list[ToolCallStep | ContextTransformStep]:
    """Validate a list of raw step dicts (or models) into tagged steps."""
    return _steps_adapter.validate_python([_tag_step(item) for item in raw])


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class MockDataConfig(_ConfigModel):
    """Controls the Faker-backed parameter synthesizer."""

    locale: str = "en_US"
    field_formats: dict[str, str] = Field(default_factory=dict)
    faker_enabled: bool = True
    seed: int | None = None
    # In-process only: callables receiving the Faker instance.
    field_generators: dict[str, Callable[[Any], Any]] = Field(default_factory=dict, exclude=True)


class AIClientConfig(_ConfigModel):
    prompt: str
    client: Literal["chatgpt", "openrouter", "gemini"] = "chatgpt"
    model: str | None = Field(default=None, description="Defaults per client.")
    api_key: str | None = None
    base_url: str | None = None
    max_turns: int = Field(default=5, ge=1)


class LoadTestConfig(_ConfigModel):
    """Top-level run configuration."""

    server_url: str
    headers: dict[str, str] = Field(default_factory=dict)
    num_calls: int = Field(default=50, ge=0)
    delay_between_calls: float = Field(default=1000, ge=0, description="Milliseconds.")
    tool_names: list[str] | None = None
    param_overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)
    randomize_params: bool = True
    mock_data: MockDataConfig = Field(default_factory=MockDataConfig)
    sequence: list[SequenceStep] | None = None
    run_all: bool = False
    ai_client: AIClientConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _tag_sequence(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("sequence"), list):
            data = {**data, "sequence": [_tag_step(item) for item in data["sequence"]]}
        return data


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class CallRecord(BaseModel):
    """Immutable log entry produced for each attempted call."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str | None = None
    duration_ms: float = 0.0


class PerToolStats(BaseModel):
    total: int = 0
    success: int = 0
    failure: int = 0
    avg: float = 0.0


class MetricsSummary(BaseModel):
    """Snapshot of the aggregator's state."""

    total: int = 0
    success: int = 0
    failure: int = 0
    avg: float = 0.0
    median: float = 0.0
    p95: float = 0.0
    throughput: float = Field(default=0.0, description="Calls per second of wall-clock time.")
    errors: dict[str, int] = Field(default_factory=dict)
    per_tool: dict[str, PerToolStats] = Field(default_factory=dict)
    total_time: float = Field(default=0.0, description="Seconds since the aggregator started.")
    details: list[CallRecord] = Field(default_factory=list)
