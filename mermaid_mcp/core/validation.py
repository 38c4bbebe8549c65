"""
Argument Validation
===================

Narrows the untyped ``arguments`` payload of a tool call into a
GenerateImageRequest. Runs before any filesystem or process work.
"""

from typing import Any, List, Mapping, Union
from dataclasses import dataclass, field

from pydantic import ValidationError

from mermaid_mcp.models.schemas import GenerateImageRequest, TOOL_NAME

INVALID_ARGUMENTS_MESSAGE = (
    f"Invalid arguments for {TOOL_NAME} tool. "
    "Required: code (string), name (string). Optional: folder (string)."
)


@dataclass(frozen=True)
class ArgumentError:
    """Rejected tool arguments."""

    message: str = INVALID_ARGUMENTS_MESSAGE
    fields: List[str] = field(default_factory=list)


ParseResult = Union[GenerateImageRequest, ArgumentError]


def parse_generate_image_args(raw: Any) -> ParseResult:
    """
    Parse raw tool arguments.

    Args:
        raw: Arguments exactly as received from the client

    Returns:
        GenerateImageRequest when ``code`` and ``name`` are strings and
        ``folder`` is absent or a string (not null), otherwise an ArgumentError naming
        the offending fields
    """
    if raw is None or not isinstance(raw, Mapping):
        return ArgumentError(fields=["arguments"])

    # folder may be omitted, but a present folder must be text
    if "folder" in raw and raw["folder"] is None:
        return ArgumentError(fields=["folder"])

    try:
        return GenerateImageRequest.model_validate(dict(raw))
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        return ArgumentError(fields=fields)
