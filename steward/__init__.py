"""Steward: conversational inspection workflow core.

Drives a numbered-menu messaging conversation that walks a field inspector
through a property inspection. Ordering, validation and persistence live in
a session-scoped phase state machine and a guarded tool dispatcher.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
