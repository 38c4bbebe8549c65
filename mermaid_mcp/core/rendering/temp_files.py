"""
Temporary Input Files
=====================

Each tool call gets its own uniquely named ``.mmd`` file in the temporary
directory. The file is removed when the scope exits, however it exits.
"""

from typing import AsyncGenerator, Optional, Union
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import aiofiles.os

from mermaid_mcp.config.logging import get_logger

logger = get_logger(__name__)

INPUT_SUFFIX = ".mmd"


def new_temp_input_path(
    temp_dir: Optional[Union[str, Path]] = None, suffix: str = INPUT_SUFFIX
) -> Path:
    """Return a fresh path named after a random UUID."""
    directory = Path(temp_dir) if temp_dir is not None else Path(tempfile.gettempdir())
    return directory / f"{uuid.uuid4()}{suffix}"


async def release_temp_input(path: Path) -> None:
    """Delete a temporary input file, logging rather than raising on failure."""
    try:
        await aiofiles.os.remove(path)
        logger.debug("Temporary input removed", path=str(path))
    except FileNotFoundError:
        logger.warning("Temporary input already gone", path=str(path))
    except OSError as e:
        logger.warning("Failed to delete temporary input", path=str(path), error=str(e))


@asynccontextmanager
async def temp_input_file(
    temp_dir: Optional[Union[str, Path]] = None, suffix: str = INPUT_SUFFIX
) -> AsyncGenerator[Path, None]:
    """
    Acquire a temporary input path for the duration of the block.

    The file itself is written by the caller. Exactly one removal attempt is
    made on exit; its failure never replaces an exception raised in the block.
    """
    path = new_temp_input_path(temp_dir, suffix)
    try:
        yield path
    finally:
        await release_temp_input(path)
