"""
Result Mapping
==============

Turns a Mermaid CLI invocation into an MCP tool result, or into a typed
internal error that carries the captured process output.
"""

from typing import List, Optional

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, ErrorData, TextContent

from mermaid_mcp.config.logging import get_logger
from mermaid_mcp.core.validation import ArgumentError
from mermaid_mcp.models.schemas import InvocationResult, OutputTarget

logger = get_logger(__name__)

SUCCESS_PREFIX = "Image successfully generated at: "


class RenderFailedError(Exception):
    """Exception raised when the Mermaid CLI did not produce an image."""

    def __init__(self, summary: str, stdout: str = "", stderr: str = ""):
        super().__init__(summary)
        self.summary = summary
        self.stdout = stdout
        self.stderr = stderr


def success_content(target: OutputTarget) -> List[TextContent]:
    """Content returned for a rendered image."""
    return [TextContent(type="text", text=f"{SUCCESS_PREFIX}{target.path}")]


def failure_summary(result: InvocationResult, target: OutputTarget) -> str:
    if result.timed_out:
        return "Mermaid CLI timed out before finishing"
    if result.returncode != 0:
        return f"Mermaid CLI exited with code {result.returncode}"
    if not result.output_exists:
        return f"Mermaid CLI failed to generate image. Output file not found at {target.path}"
    return (
        f"Mermaid CLI produced an incomplete image at {target.path} "
        f"({result.output_size} bytes)"
    )


def check_invocation(result: InvocationResult, target: OutputTarget) -> List[TextContent]:
    """
    Map an invocation result to tool content.

    Raises:
        RenderFailedError: If the process failed or the output file is missing
    """
    if result.succeeded:
        return success_content(target)
    raise RenderFailedError(
        failure_summary(result, target), stdout=result.stdout, stderr=result.stderr
    )


def format_error_message(error: BaseException) -> str:
    """Build the client-facing message, appending captured streams when present."""
    summary = error.summary if isinstance(error, RenderFailedError) else str(error)
    message = f"Failed to generate image: {summary or type(error).__name__}"

    stderr: Optional[str] = getattr(error, "stderr", None)
    stdout: Optional[str] = getattr(error, "stdout", None)
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    if isinstance(stdout, bytes):
        stdout = stdout.decode("utf-8", errors="replace")
    if stderr:
        message += f"\nStderr: {stderr}"
    if stdout:
        message += f"\nStdout: {stdout}"
    return message


def to_internal_error(error: BaseException) -> McpError:
    """Normalize any execution failure into an INTERNAL_ERROR McpError."""
    if isinstance(error, McpError):
        return error
    logger.error(
        "Error during image generation",
        error=str(error),
        error_type=type(error).__name__,
        exc_info=error,
    )
    return McpError(ErrorData(code=INTERNAL_ERROR, message=format_error_message(error)))


def invalid_params_error(error: ArgumentError) -> McpError:
    return McpError(
        ErrorData(code=INVALID_PARAMS, message=error.message, data={"fields": error.fields})
    )


def unknown_tool_error(name: str) -> McpError:
    return McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))
