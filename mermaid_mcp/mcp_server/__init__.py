"""
MCP Server Implementation
========================

Model Context Protocol server exposing Mermaid rendering as a tool.

Tools provided:
- generate_image: Render Mermaid markup to a PNG file and return its path
"""
