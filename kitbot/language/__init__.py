"""Language layer for KitBot.

This module provides:
- Portuguese user-facing text (messages_pt.py)
"""

from .messages_pt import get_text, get_tool_detail

__all__ = ['get_text', 'get_tool_detail']
