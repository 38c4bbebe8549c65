"""
Rendering Engine
================

Temporary input handling and Mermaid CLI invocation.

Components:
- temp_files: Scoped, uniquely named .mmd input files
- mermaid_cli: Child-process execution of the Mermaid CLI
"""
