"""Integration tests for issue-pilot.

These tests drive complete sessions against real git repositories created in
a temporary directory, with the fake agent CLI standing in for the real one.

Run with: pytest tests/integration/ -v -m integration
"""
