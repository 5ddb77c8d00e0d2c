"""Shared helpers: async subprocess execution and logging setup."""
