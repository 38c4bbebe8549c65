"""
Core Logic
==========

Argument validation and Mermaid CLI rendering for the generate_image tool.
"""
