"""Shared helpers for History Mirror."""
