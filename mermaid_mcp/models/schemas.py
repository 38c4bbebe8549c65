"""
Pydantic Models and Schemas
===========================

Request-scoped data models for the generate_image tool: the validated request,
the resolved output target and the captured result of one Mermaid CLI run.
Nothing here outlives a single tool call.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.types import StrictStr


TOOL_NAME = "generate_image"

TOOL_DESCRIPTION = "Generate PNG image from mermaid markdown using Mermaid CLI"

GENERATE_IMAGE_INPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "code": {
            "type": "string",
            "description": "The mermaid markdown code to generate an image from",
        },
        "name": {
            "type": "string",
            "description": "Base name for the output PNG file (without extension)",
        },
        "folder": {
            "type": "string",
            "description": (
                "Absolute path to the directory where the image should be saved "
                "(optional, defaults to the server's configured output directory)"
            ),
        },
    },
    "required": ["code", "name"],
}

OUTPUT_SUFFIX = ".png"


class GenerateImageRequest(BaseModel):
    """Validated arguments of a generate_image call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    code: StrictStr = Field(..., description="Mermaid diagram source")
    name: StrictStr = Field(..., description="Output base name without extension")
    folder: Optional[StrictStr] = Field(None, description="Output directory")


@dataclass(frozen=True)
class OutputTarget:
    """Where the rendered PNG is expected to appear."""

    directory: Path
    path: Path
    create_directory: bool = False


def resolve_output_target(request: GenerateImageRequest, default_dir: Path) -> OutputTarget:
    """
    Resolve the absolute output path for a request.

    A supplied folder is resolved against the working directory and flagged
    for creation; otherwise the configured default directory is used as is.
    """
    if request.folder is not None:
        directory = Path(request.folder).expanduser().resolve()
        create = True
    else:
        directory = Path(default_dir).resolve()
        create = False
    return OutputTarget(
        directory=directory,
        path=directory / f"{request.name}{OUTPUT_SUFFIX}",
        create_directory=create,
    )


@dataclass
class InvocationResult:
    """Captured outcome of one Mermaid CLI process."""

    command: List[str]
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
    output_exists: bool = False
    output_size: int = 0
    timed_out: bool = False
    min_output_bytes: int = field(default=1, repr=False)

    @property
    def exited_ok(self) -> bool:
        return not self.timed_out and self.returncode == 0

    @property
    def succeeded(self) -> bool:
        """True only when the process exited zero and a large enough output file exists."""
        return (
            self.exited_ok
            and self.output_exists
            and self.output_size >= self.min_output_bytes
        )
