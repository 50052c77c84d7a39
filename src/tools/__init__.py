"""Tool framework: import tool modules here to register them."""

# Import tool modules so their @registry.tool() decorators execute.
# Retriever tools need a runtime and are registered via register_retriever_tools().
from src.tools import memory_tools  # noqa: F401
from src.tools.registry import registry
from src.tools.retriever_tools import register_retriever_tools

__all__ = ["register_retriever_tools", "registry"]
