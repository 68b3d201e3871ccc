"""Conversation history storage."""

from .simple import ConversationBufferMemory, MemoryRecord

__all__ = ["ConversationBufferMemory", "MemoryRecord"]
