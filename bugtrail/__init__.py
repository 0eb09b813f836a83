"""BUGTRAIL - Ticket integration client for QA bug capture.

This package authenticates against an external issue tracker, uploads
captured evidence (screenshots, recordings) and creates structured tickets
behind a provider-agnostic interface.
"""

__version__ = "0.1.0"
SCRIPT_NAME = "BUGTRAIL"

__all__ = [
    "__version__",
    "SCRIPT_NAME",
]
