"""
Data Models
===========

Request, output target and invocation result models for the generate_image tool.
"""
