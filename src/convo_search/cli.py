import json
from typing import Annotated

import typer

from convo_search.config import settings
from convo_search.core.cancellation import CancellationToken, SearchCancelledError
from convo_search.core.models import SearchRequest
from convo_search.core.registry import ComponentRegistry
from convo_search.logger import configure_logger
from convo_search.services.query_parser import QueryParser
from convo_search.services.scoring import RelevanceScorer
from convo_search.services.search import SearchService
from convo_search.services.suggestions import SuggestionGenerator

app = typer.Typer(
    help="convo-search: Intent-aware relevance search over stored conversations",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        from convo_search import __version__

        typer.echo(f"convo-search version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config_file: Annotated[
        str, typer.Option("--config-file", "-c", help="Path to config.yaml file.")
    ] = "config.yaml",
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show the version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """convo-search: Configurable conversation search engine."""
    import os

    from convo_search.config import load_settings

    # Export to environment so uvicorn subprocesses (in API mode) inherit it
    os.environ["CONVO_CONFIG_FILE"] = config_file

    # Dynamically update the current process global settings singleton
    new_settings = load_settings(config_file)
    settings.data_path = new_settings.data_path
    settings.store_type = new_settings.store_type
    settings.event_sink = new_settings.event_sink
    settings.default_limit = new_settings.default_limit
    settings.log_level = new_settings.log_level
    settings.log_serialize = new_settings.log_serialize
    settings.parser = new_settings.parser
    settings.scoring = new_settings.scoring

    configure_logger(settings.log_level, settings.log_serialize)


def _build_service() -> SearchService:
    """Dependency Injection Factory driven by config.yaml configuration."""
    StoreClass = ComponentRegistry.get_store(settings.store_type)
    EventSinkClass = ComponentRegistry.get_event_sink(settings.event_sink)

    events = EventSinkClass()
    return SearchService(
        store=StoreClass(path=settings.data_path),
        parser=QueryParser(settings.parser, events=events),
        scorer=RelevanceScorer(settings.scoring, events=events),
        suggester=SuggestionGenerator(settings.parser.related_topics),
        events=events,
    )


def _service_or_exit() -> SearchService:
    try:
        return _build_service()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def parse(
    query: Annotated[str, typer.Argument(help="The free-text query to analyse.")],
) -> None:
    """Shows how a query is interpreted: intent, terms and complexity."""
    parsed = QueryParser(settings.parser).parse(query)
    typer.echo(json.dumps(parsed.model_dump(mode="json"), indent=2))


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="The text to search for in stored conversations.")],
    limit: Annotated[
        int | None, typer.Option("--limit", "-l", help="Maximum number of results to return.")
    ] = None,
    model: Annotated[
        str | None, typer.Option("--model", "-m", help="Only turns produced by this model.")
    ] = None,
    conversation: Annotated[
        str | None, typer.Option("--conversation", help="Restrict to one conversation id.")
    ] = None,
    tools: Annotated[
        list[str] | None, typer.Option("--tool", help="Only turns that used this tool.")
    ] = None,
    explain: Annotated[
        bool, typer.Option("--explain", "-e", help="Print the score breakdown per result.")
    ] = False,
    timeout: Annotated[
        float | None, typer.Option("--timeout", help="Abort the search after N seconds.")
    ] = None,
) -> None:
    """Ranks stored conversation turns by relevance to the query."""
    service = _service_or_exit()
    request = SearchRequest(
        query=query,
        model=model,
        conversation_id=conversation,
        tools_used=tools or [],
        take=limit or settings.default_limit,
    )
    token = CancellationToken.with_timeout(timeout) if timeout is not None else None

    try:
        response = service.execute_query(request, cancel_token=token)
    except SearchCancelledError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    service.print_results(response, explain=explain)


@app.command()
def related(
    conversation_id: Annotated[str, typer.Argument(help="Conversation to find neighbours of.")],
    limit: Annotated[
        int, typer.Option("--limit", "-l", help="Maximum number of conversations.")
    ] = 5,
) -> None:
    """Lists conversations related to the given one."""
    service = _service_or_exit()
    results = service.related_conversations(conversation_id, limit=limit)
    if not results:
        typer.echo(f"No related conversations found for '{conversation_id}'")
        return

    for item in results:
        typer.echo(f"{item.score:.4f}  {item.conversation_id} (turn {item.best_turn_number})")


@app.command()
def suggest(
    query: Annotated[str, typer.Argument(help="The query to build suggestions for.")],
) -> None:
    """Proposes follow-up queries."""
    parsed = QueryParser(settings.parser).parse(query)
    suggestions = SuggestionGenerator(settings.parser.related_topics).suggest(parsed)
    if not suggestions:
        typer.echo("No suggestions")
        return

    for item in suggestions:
        typer.echo(f"{item.confidence:.2f}  {item.text}  [{item.type}] {item.description}")


@app.command()
def serve(
    host: Annotated[
        str, typer.Option("--host", "-h", help="Host to bind the API server to.")
    ] = "127.0.0.1",
    port: Annotated[
        int, typer.Option("--port", "-p", help="Port to bind the API server to.")
    ] = 8000,
    reload: Annotated[
        bool, typer.Option("--reload", help="Enable auto-reload for development.")
    ] = False,
) -> None:
    """Starts the asynchronous FastAPI search server."""
    import uvicorn

    print(f"Starting convo-search API server at http://{host}:{port}...")
    uvicorn.run("convo_search.api.main:app", host=host, port=port, reload=reload)


@app.command()
def mcp() -> None:
    """Starts the FastMCP standard input/output (stdio) server for integrations."""
    import sys

    from convo_search.api.mcp_server import mcp as mcp_server
    from convo_search.api.state import _services

    print("[MCP Startup] Loading conversation store...", file=sys.stderr)
    try:
        _services["search"] = _build_service()
    except Exception as e:
        print(f"[MCP Startup] Failed to initialize search service: {e}", file=sys.stderr)
        raise

    mcp_server.run()


if __name__ == "__main__":
    app()
