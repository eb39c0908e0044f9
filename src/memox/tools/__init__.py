"""LangChain tools exposing retrieval to agents."""

from .rag import create_rag_tools

__all__ = ["create_rag_tools"]
