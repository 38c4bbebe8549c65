"""
End-to-End STDIO MCP Tests
==========================

Starts ``python -m mermaid_mcp`` as a child process and talks to it through
the MCP client SDK over stdio, with the stub renderer standing in for the
Mermaid CLI.
"""

import json
import os
import signal
import subprocess
import sys
import threading
from pathlib import Path

import pytest
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

from tests.conftest import TEST_PUPPETEER_PATH, stub_command

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def server_environment(tmp_path: Path, mode: str = "success") -> dict:
    env = dict(os.environ)
    env.update(
        {
            "PUPPETEER_EXECUTABLE_PATH": TEST_PUPPETEER_PATH,
            "MERMAID_MCP_RENDERER_COMMAND": json.dumps(stub_command(mode)),
            "MERMAID_MCP_DEFAULT_OUTPUT_DIR": str(tmp_path / "default"),
            "MERMAID_MCP_ENVIRONMENT": "testing",
            "PYTHONPATH": os.pathsep.join(
                p for p in [str(PROJECT_ROOT), env.get("PYTHONPATH", "")] if p
            ),
        }
    )
    return env


def server_parameters(tmp_path: Path, mode: str = "success") -> StdioServerParameters:
    return StdioServerParameters(
        command=sys.executable,
        args=["-m", "mermaid_mcp"],
        env=server_environment(tmp_path, mode),
        cwd=str(tmp_path),
    )


@pytest.mark.integration
class TestE2EMCPSTDIO:
    """Protocol round trips over a real stdio transport."""

    @pytest.mark.asyncio
    async def test_list_and_generate(self, tmp_path):
        """Test initialize, tools/list and a successful tools/call."""
        folder = tmp_path / "out"
        async with stdio_client(server_parameters(tmp_path)) as (read, write):
            async with ClientSession(read, write) as session:
                info = await session.initialize()
                assert info.serverInfo.name == "mermaid-cli-server"

                tools = await session.list_tools()
                assert [tool.name for tool in tools.tools] == ["generate_image"]

                result = await session.call_tool(
                    "generate_image",
                    {"code": "graph TD; A-->B", "name": "e2e", "folder": str(folder)},
                )

        assert result.isError is False
        expected = (folder / "e2e.png").resolve()
        assert result.content[0].text == f"Image successfully generated at: {expected}"
        assert expected.exists()

    @pytest.mark.asyncio
    async def test_protocol_errors(self, tmp_path):
        """Test that typed errors arrive as JSON-RPC errors and the server survives them."""
        async with stdio_client(server_parameters(tmp_path, "fail")) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()

                with pytest.raises(McpError) as exc_info:
                    await session.call_tool("render", {"code": "x", "name": "y"})
                assert exc_info.value.error.code == METHOD_NOT_FOUND

                with pytest.raises(McpError) as exc_info:
                    await session.call_tool("generate_image", {"code": "x"})
                assert exc_info.value.error.code == INVALID_PARAMS

                with pytest.raises(McpError) as exc_info:
                    await session.call_tool("generate_image", {"code": "x", "name": "y"})
                assert exc_info.value.error.code == INTERNAL_ERROR
                assert "Parse error on line 2" in exc_info.value.error.message

                tools = await session.list_tools()
                assert len(tools.tools) == 1


@pytest.mark.integration
class TestStartupPrecondition:
    """Test the required browser binary variable."""

    def test_missing_browser_path_refuses_to_start(self, tmp_path):
        """Test that the server exits before opening the transport."""
        env = server_environment(tmp_path)
        env.pop("PUPPETEER_EXECUTABLE_PATH")
        env.pop("MERMAID_MCP_PUPPETEER_EXECUTABLE_PATH", None)

        completed = subprocess.run(
            [sys.executable, "-m", "mermaid_mcp"],
            env=env,
            cwd=tmp_path,
            input="",
            capture_output=True,
            text=True,
            timeout=60,
        )

        assert completed.returncode == 1
        assert completed.stdout == ""
        assert "PUPPETEER_EXECUTABLE_PATH" in completed.stderr


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
class TestInterruptShutdown:
    """Test that an interrupt stops the server cleanly."""

    def test_sigint_exits_cleanly(self, tmp_path):
        """Test SIGINT while the client still holds stdin open."""
        process = subprocess.Popen(
            [sys.executable, "-m", "mermaid_mcp"],
            env=server_environment(tmp_path),
            cwd=tmp_path,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        ready = threading.Event()
        stderr_lines = []

        def watch_stderr():
            for line in process.stderr:
                stderr_lines.append(line)
                if "running on stdio" in line:
                    ready.set()

        watcher = threading.Thread(target=watch_stderr, daemon=True)
        watcher.start()

        try:
            assert ready.wait(timeout=30), "".join(stderr_lines)
            process.send_signal(signal.SIGINT)
            returncode = process.wait(timeout=15)
        finally:
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdin.close()
            process.stdout.close()

        watcher.join(timeout=5)
        assert returncode == 0, "".join(stderr_lines)
        assert any("shutdown signal" in line for line in stderr_lines)
