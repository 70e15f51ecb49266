"""Assistant-facing tools for the inspection conversation."""

from steward.tools.context import ToolContext
from steward.tools.definitions import TOOL_DEFINITIONS
from steward.tools.dispatcher import ToolDispatcher
from steward.tools.handlers import HANDLERS

__all__ = ["HANDLERS", "TOOL_DEFINITIONS", "ToolContext", "ToolDispatcher"]
