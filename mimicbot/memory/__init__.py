"""Long-term memory: ChromaDB vector store and the manager the agent talks to."""

from mimicbot.memory.manager import MemoryManager
from mimicbot.memory.vector_memory import VectorMemory

__all__ = ["MemoryManager", "VectorMemory"]
