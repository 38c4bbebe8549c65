"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Application settings, renderer location and rendering flags
- logging: Structured logging configuration
"""
