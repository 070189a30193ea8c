from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from ..auth.session import AuthSession
from ..grounding.citations import merge_result
from ..utils.config import init_runtime
from ..utils.errors import (
    ApiError,
    AuthError,
    EmptyQueryError,
    EmptyResultError,
    ProjectSetupError,
    WebSearchError,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "gemini-google-web-search-mcp"
TOOL_NAME = "google_web_search"
TOOL_DESCRIPTION = (
    "Performs a web search using Google Search (via the Gemini API or Code Assist API) "
    "and returns the results. This tool is useful for finding information on the "
    "internet based on a query."
)

SETUP_GUIDANCE = """Try one of these:
1. Use an API key: export GOOGLE_API_KEY=your-api-key
   (get one at https://aistudio.google.com/app/apikey)
2. Use Google login: export USE_OAUTH=true
   plus OAUTH_CLIENT_ID / OAUTH_CLIENT_SECRET for your OAuth client
3. Set the project manually: export GOOGLE_CLOUD_PROJECT=your-project-id
   (create one at https://console.cloud.google.com/projectcreate)"""


def perform_search(session: AuthSession, query: str) -> str:
    result = session.search(query)
    return f'Web search results for "{query}":\n\n{merge_result(result)}'


def describe_error(error: BaseException, query: str) -> str:
    if isinstance(error, EmptyQueryError):
        return f"Error: {error}"
    if isinstance(error, EmptyResultError):
        return str(error)
    if isinstance(error, AuthError):
        return f"Authentication failed ({error.kind.value}): {error}\n\n{SETUP_GUIDANCE}"
    if isinstance(error, ProjectSetupError):
        return f"Project setup failed ({error.kind.value}): {error}\n\n{SETUP_GUIDANCE}"
    if isinstance(error, ApiError):
        status = error.status_code if error.status_code is not None else "no response"
        return f"Search API error: {status} - {error.body}"
    return f'Error during web search for query "{query}": {error}'


async def run_google_web_search(session: AuthSession, query: str) -> str:
    """Run one search off the event loop and render the outcome as text.

    An empty result is informational; every other failure becomes a
    ToolError so the client sees ``isError``.
    """

    logger.info("Search request: query='%s'", query)
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, perform_search, session, query)
    except EmptyResultError as e:
        logger.info("No grounded answer for query='%s'", query)
        return describe_error(e, query)
    except WebSearchError as e:
        logger.warning("Web search failed: %s", e)
        raise ToolError(describe_error(e, query)) from e
    except Exception as e:
        logger.exception("Web search crashed for query='%s'", query)
        raise ToolError(describe_error(e, query)) from e


def create_server(session: AuthSession) -> FastMCP:
    mcp = FastMCP(SERVER_NAME)

    @mcp.tool(name=TOOL_NAME, description=TOOL_DESCRIPTION)
    async def google_web_search(
        query: Annotated[str, Field(description="The search query to find information on the web.")],
    ) -> str:
        return await run_google_web_search(session, query)

    return mcp


def main() -> None:
    cfg = init_runtime()
    logger.info("Gemini Google Web Search MCP server starting...")
    if not cfg.auth_configured:
        logger.warning("No authentication configured; searches will fail until one is set")
    elif cfg.use_oauth:
        logger.info("Auth: OAuth (Code Assist), model=%s", cfg.model)
    else:
        logger.info("Auth: API key (Gemini API), model=%s", cfg.model)
    if cfg.proxy:
        logger.info("Proxy enabled: %s", cfg.proxy)

    session = AuthSession(cfg)
    server = create_server(session)
    logger.info("Waiting for MCP client connection...")
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
