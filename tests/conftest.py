"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides settings wired to the stub renderer and isolated output/temp directories.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from mermaid_mcp.config.settings import Settings
from mermaid_mcp.mcp_server.server import MermaidCLIMCPServer

STUB_RENDERER = Path(__file__).parent / "utils" / "stub_renderer.py"

TEST_PUPPETEER_PATH = "/opt/test/chrome-headless-shell"

SAMPLE_DIAGRAM = "graph TD\n    A[Start] --> B{Is it?}\n    B -->|Yes| C[OK]\n    B -->|No| D[End]\n"


def stub_command(
    mode: str = "success",
    record_dir: Optional[Path] = None,
    sleep: float = 0.0,
    grandchild_sleep: float = 0.0,
) -> List[str]:
    """Build a renderer_command that runs the stub renderer in the given mode."""
    command = [sys.executable, str(STUB_RENDERER), "--mode", mode]
    if record_dir is not None:
        command += ["--record-dir", str(record_dir)]
    if sleep:
        command += ["--sleep", str(sleep)]
    if grandchild_sleep:
        command += ["--grandchild-sleep", str(grandchild_sleep)]
    return command


@pytest.fixture
def temp_input_dir(tmp_path: Path) -> Path:
    """Directory receiving the temporary .mmd inputs."""
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def default_output_dir(tmp_path: Path) -> Path:
    """Output directory used when a request omits folder."""
    path = tmp_path / "default_output"
    path.mkdir()
    return path


@pytest.fixture
def record_dir(tmp_path: Path) -> Path:
    """Directory where the stub renderer records its invocations."""
    path = tmp_path / "records"
    path.mkdir()
    return path


@pytest.fixture
def make_settings(
    temp_input_dir: Path, default_output_dir: Path, record_dir: Path
) -> Callable[..., Settings]:
    """Factory for settings pointing at the stub renderer."""

    def factory(
        mode: str = "success",
        sleep: float = 0.0,
        grandchild_sleep: float = 0.0,
        **overrides: Any,
    ) -> Settings:
        values: Dict[str, Any] = {
            "puppeteer_executable_path": TEST_PUPPETEER_PATH,
            "renderer_command": stub_command(mode, record_dir, sleep, grandchild_sleep),
            "default_output_dir": default_output_dir,
            "temp_dir": temp_input_dir,
            "environment": "testing",
            "log_level": "DEBUG",
            "render_timeout": 30.0,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def test_settings(make_settings: Callable[..., Settings]) -> Settings:
    """Settings for a renderer that succeeds."""
    return make_settings()


@pytest.fixture
def make_server(make_settings: Callable[..., Settings]) -> Callable[..., MermaidCLIMCPServer]:
    """Factory for MCP servers backed by the stub renderer."""

    def factory(mode: str = "success", **overrides: Any) -> MermaidCLIMCPServer:
        return MermaidCLIMCPServer(make_settings(mode, **overrides))

    return factory


@pytest.fixture
def sample_diagram() -> str:
    """Small flowchart diagram."""
    return SAMPLE_DIAGRAM
