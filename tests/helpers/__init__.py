"""Shared test helpers for Diff Digest."""
