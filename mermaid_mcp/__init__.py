"""
Mermaid CLI MCP Server
======================

A Model Context Protocol (MCP) server that renders Mermaid diagram markup
into PNG images by invoking the Mermaid CLI (mmdc) as a child process.

This package provides:
- MCP protocol implementation exposing the generate_image tool
- Validation of untrusted tool arguments
- Scoped temporary input files and Mermaid CLI invocation
"""

__version__ = "0.1.0"
__author__ = "Mermaid CLI MCP Team"
