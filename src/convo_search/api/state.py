from convo_search.services.search import SearchService

# Shared between the FastAPI app and the MCP server
_services: dict[str, SearchService] = {}
