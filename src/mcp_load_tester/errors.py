# errors.py
# Exception taxonomy for the load tester.
#
# ConfigurationError covers authoring mistakes in a sequence (unknown tool,
# malformed mapping, malformed path). Everything else is a runtime failure of
# a single call or of the data flowing between calls.
#
# Transport failures are not wrapped. Whatever the MCP client raises is
# recorded and propagated as-is.


class LoadTestError(Exception):
    """Base class for all load tester errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(LoadTestError):
    """Raised when a sequence or config is malformed."""


class ToolNotFoundError(ConfigurationError):
    """Raised when a step names a tool the server did not advertise."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool {tool_name!r} not found")
        self.tool_name = tool_name


class InvalidMappingError(ConfigurationError):
    """Raised when a mapping value is neither a path string nor a nested map."""


class PathSyntaxError(ConfigurationError):
    """Raised when a path expression cannot be parsed."""


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class PathNotFoundError(LoadTestError):
    """Raised when a required path has no match in the source value."""


class ToolApplicationError(LoadTestError):
    """Raised when the server answers a call with isError=true."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class OutputDecodeError(LoadTestError):
    """Raised when a step expecting JSON output receives something else."""


class AgentError(LoadTestError):
    """Raised when the AI agent cannot produce a final answer."""
