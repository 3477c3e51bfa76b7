"""Diff Digest - Streaming release notes for merged pull requests.

A terminal client that pages through merged pull requests and streams
AI-written release notes for them, resuming interrupted generations and
restoring its state between runs.
"""

__version__ = "0.1.0"
__author__ = "Diff Digest Team"

# Package metadata
__all__ = [
    "__version__",
    "__author__",
]
