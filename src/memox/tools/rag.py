"""RAG tools for agents.

Tools are bound to a caller-owned RetrievalManager:
- ``rag_context``: token-bounded context block for a prompt
- ``rag_search``: ranked list of matching code sections
"""

from langchain_core.tools import tool

from ..logging_config import get_logger
from ..rag.context import format_chunks
from ..rag.manager import RetrievalManager

logger = get_logger(__name__)


def create_rag_tools(manager: RetrievalManager, max_tokens: int = 1536) -> list:
    """Create LangChain tools that query ``manager``.

    Args:
        manager: Initialized retrieval manager
        max_tokens: Context budget used by ``rag_context``

    Returns:
        [rag_context, rag_search]
    """

    @tool
    def rag_context(query: str) -> str:
        """Get relevant code from the indexed workspace, grouped by file, to answer a question.

        Mention a file name (e.g. "in parser.py") to prioritise that file.

        Args:
            query: Natural language description of the code needed
        """
        return manager.get_relevant_context(query, max_tokens=max_tokens)

    @tool
    def rag_search(query: str, n_results: int = 5) -> str:
        """Search the indexed workspace semantically and list the best matching code sections.

        Args:
            query: Natural language description of what to find
            n_results: Maximum number of results to return
        """
        try:
            hits = manager.store.search_scored(query, n_results)
        except Exception as e:
            logger.warning("RAG search failed: %s", e)
            return f"RAG search error: {e}"
        return format_chunks([c for c, _ in hits], [s for _, s in hits])

    return [rag_context, rag_search]
