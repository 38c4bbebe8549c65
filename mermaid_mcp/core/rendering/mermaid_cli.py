"""
Mermaid CLI Renderer
====================

Runs the Mermaid CLI (mmdc) as a child process for one validated request.
Writes the diagram source to the temporary input, executes the CLI with the
configured browser binary, captures both output streams and finally checks
that the declared PNG exists on disk.
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import os
import shlex
import signal
from pathlib import Path

import aiofiles
import aiofiles.os

from mermaid_mcp.config.logging import get_logger
from mermaid_mcp.config.settings import Settings
from mermaid_mcp.models.schemas import (
    GenerateImageRequest,
    InvocationResult,
    OutputTarget,
    resolve_output_target,
)

logger = get_logger(__name__)

PUPPETEER_ENV_VAR = "PUPPETEER_EXECUTABLE_PATH"

# Seconds to wait for pipes to drain after the process group is killed
REAP_TIMEOUT = 5.0


class MermaidCLIRenderer:
    """Builds and executes Mermaid CLI invocations."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger: Any = logger.bind(component="mermaid_cli")  # structlog.BoundLoggerBase
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(settings.max_concurrent_renders)
            if settings.max_concurrent_renders
            else None
        )

    def build_command(self, input_path: Path, output_path: Path) -> List[str]:
        """Return the full argument vector for one render."""
        command = list(self.settings.renderer_command)
        command += ["-i", str(input_path), "-o", str(output_path)]

        if self.settings.theme:
            command += ["-t", self.settings.theme]
        if self.settings.background_color:
            command += ["-b", self.settings.background_color]
        if self.settings.scale is not None:
            command += ["-s", f"{self.settings.scale:g}"]
        if self.settings.width is not None:
            command += ["-w", str(self.settings.width)]
        if self.settings.height is not None:
            command += ["-H", str(self.settings.height)]
        if self.settings.config_file is not None:
            command += ["-c", str(self.settings.config_file)]
        if self.settings.puppeteer_config_file is not None:
            command += ["-p", str(self.settings.puppeteer_config_file)]

        return command

    def build_environment(self) -> Dict[str, str]:
        """Inherit the parent environment and point Puppeteer at the configured browser."""
        env = dict(os.environ)
        env[PUPPETEER_ENV_VAR] = self.settings.puppeteer_executable_path
        return env

    async def render(
        self, request: GenerateImageRequest, input_path: Path
    ) -> Tuple[OutputTarget, InvocationResult]:
        """
        Render one request.

        Args:
            request: Validated tool arguments
            input_path: Temporary input path owned by the caller

        Returns:
            The resolved output target and the captured invocation result

        Raises:
            OSError: If the output directory cannot be created, the input
                cannot be written or the CLI cannot be spawned
        """
        target = resolve_output_target(request, self.settings.default_output_dir)

        if target.create_directory:
            await aiofiles.os.makedirs(target.directory, exist_ok=True)

        async with aiofiles.open(input_path, "w", encoding="utf-8") as f:
            await f.write(request.code)

        command = self.build_command(input_path, target.path)

        if self._semaphore is not None:
            async with self._semaphore:
                result = await self._execute(command)
        else:
            result = await self._execute(command)

        result.output_exists, result.output_size = await self._check_output(target.path)
        if not result.output_exists:
            self.logger.error(
                "Output file not found after command execution", output=str(target.path)
            )

        return target, result

    async def _execute(self, command: List[str]) -> InvocationResult:
        """Spawn the CLI and wait for it, honouring the configured timeout."""
        self.logger.info(
            "Executing Mermaid CLI",
            command=shlex.join(command),
            puppeteer_executable_path=self.settings.puppeteer_executable_path,
        )

        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self.build_environment(),
            start_new_session=True,
        )

        result = InvocationResult(
            command=command, min_output_bytes=self.settings.min_output_bytes
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.settings.render_timeout
            )
        except asyncio.TimeoutError:
            result.timed_out = True
            _kill_process_group(process)
            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=REAP_TIMEOUT
                )
            except asyncio.TimeoutError:
                stdout, stderr = b"", b""
                await process.wait()
            self.logger.error(
                "Mermaid CLI timed out", timeout=self.settings.render_timeout, pid=process.pid
            )

        result.returncode = process.returncode
        result.stdout = _decode(stdout)
        result.stderr = _decode(stderr)

        self.logger.info("Mermaid CLI stdout", stdout=result.stdout, returncode=result.returncode)
        if result.stderr:
            self.logger.warning("Mermaid CLI stderr", stderr=result.stderr)

        return result

    async def _check_output(self, output_path: Path) -> Tuple[bool, int]:
        try:
            stat = await aiofiles.os.stat(output_path)
        except FileNotFoundError:
            return False, 0
        return True, stat.st_size


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the CLI and everything it started (node, Chromium)."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except (AttributeError, PermissionError):
        if process.returncode is None:
            process.kill()


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace").rstrip() if data else ""
