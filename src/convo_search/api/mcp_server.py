from mcp.server.fastmcp import FastMCP

from convo_search.api.state import _services
from convo_search.core.models import SearchRequest

mcp = FastMCP("convo-search")


@mcp.tool()
async def search_conversations(
    query: str,
    limit: int = 5,
    model: str | None = None,
    conversation_id: str | None = None,
) -> str:
    """
    Search stored conversation turns ranked by intent-aware relevance.

    Args:
        query: Free-text query, e.g. 'how to debug authentication errors'.
        limit: Maximum number of results to return.
        model: Optional model name filter (case-insensitive substring).
        conversation_id: Optional conversation to restrict the search to.
    """
    service = _services.get("search")
    if not service:
        return "Error: Conversation search service is not initialized."

    try:
        response = service.execute_query(
            SearchRequest(
                query=query,
                take=limit,
                model=model,
                conversation_id=conversation_id,
                include_highlights=False,
            )
        )

        if not response.results:
            return f"No results found for query: '{query}'"

        output = [
            f"Found {response.total_count} results for '{query}' ({response.interpretation}):\n"
        ]
        for item in response.results:
            turn = item.turn
            output.append(
                f"--- Result (Score: {item.score:.4f}) ---\n"
                f"Conversation: {turn.conversation_id} (turn {turn.turn_number}, {turn.model})\n"
                f"Prompt:\n{turn.prompt}\n"
                f"Response:\n{turn.response}\n"
                f"Why: {item.relevance.explanation}\n"
            )

        return "\n".join(output)

    except Exception as e:
        return f"Search execution failed: {e}"


@mcp.tool()
async def parse_query(query: str) -> str:
    """
    Explain how a query is interpreted: intent, search terms and complexity.

    Args:
        query: The free-text query to analyse.
    """
    service = _services.get("search")
    if not service:
        return "Error: Conversation search service is not initialized."

    parsed = service.parser.parse(query)
    return (
        f"Intent: {parsed.intent.value}\n"
        f"Interpretation: {parsed.interpretation}\n"
        f"Processed query: {parsed.processed_query}\n"
        f"Terms: {', '.join(parsed.terms) or '(none)'}\n"
        f"Complexity: {parsed.complexity:.2f}"
    )


@mcp.tool()
async def related_conversations(conversation_id: str, limit: int = 5) -> str:
    """
    List conversations whose content is related to the given conversation.

    Args:
        conversation_id: The conversation to find neighbours of.
        limit: Maximum number of conversations to return.
    """
    service = _services.get("search")
    if not service:
        return "Error: Conversation search service is not initialized."

    try:
        results = service.related_conversations(conversation_id, limit=limit)
    except Exception as e:
        return f"Related search failed: {e}"

    if not results:
        return f"No related conversations found for '{conversation_id}'"

    lines = [f"Conversations related to '{conversation_id}':"]
    lines.extend(
        f"- {item.conversation_id} (score {item.score:.4f}, turn {item.best_turn_number})"
        for item in results
    )
    return "\n".join(lines)
