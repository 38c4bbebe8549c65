"""
Test Utilities
==============

Stub renderer and helpers shared by the test suite.
"""
