"""Shared utilities (file helpers, succeed-once guard, logging setup)."""
