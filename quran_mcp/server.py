"""
Quran MCP server built on FastMCP v2.

This module is the composition root. It wires together:
- Two tools: getVerse and getAvailableTranslations
- One process-wide ClientCache shared by every tool call, so all callers
  reuse the same Quran API access token
- Optional JWT admission middleware (every MCP request must carry a valid
  Bearer token when MCP_AUTH_ENABLED is true)
- Health and readiness HTTP endpoints (for container probes)
- Structured JSON logging
- Streamable HTTP transport (or stdio for local use)

Request flow for a tool call:

    1. FastMCP validates the arguments against the tool's parameter schema
    2. AuthMiddleware admits the caller (if enabled)
    3. The tool handler (quran_mcp.tools) borrows the cached QuranClient
    4. The handler renders the result, or the failure, into a ToolResponse
    5. to_tool_result() turns that envelope into the MCP result

Running the server:
    QURAN_CLIENT_ID=... QURAN_CLIENT_SECRET=... uv run python -m quran_mcp.server

    This starts the server on http://0.0.0.0:8080 with:
    - MCP endpoint at /mcp (Streamable HTTP)
    - Health check at /health
    - Readiness check at /ready
"""

import json
import logging
import sys
import uuid
from contextlib import asynccontextmanager
from typing import Annotated, Sequence, TextIO

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ImageContent, ListToolsRequest, TextContent
from pydantic import Field
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from quran_mcp.auth import AuthError, Caller, authenticate_caller
from quran_mcp.client_cache import ClientCache, QuranConfig
from quran_mcp.config import load_quran_config, quran_settings, settings
from quran_mcp.environments import QuranEnvironment, resolve_endpoints
from quran_mcp.errors import ConfigurationError
from quran_mcp.tools import (
    GET_TRANSLATIONS_TOOL,
    GET_VERSE_TOOL,
    ToolResponse,
    get_available_translations,
    get_verse,
)

logger = logging.getLogger("quran-mcp")

# Two positive integers: "2:255", "1:1".
VERSE_KEY_PATTERN = r"^[1-9]\d*:[1-9]\d*$"


# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------
# One JSON object per log line so the log collector can index fields such as
# request_id, subject, tool, error_kind.


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO", "logger": "quran-mcp.tools",
         "message": "Tool executed: getVerse", "verse_key": "2:255", "translations": 1, "tafsirs": 0}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured fields passed via logger.info("msg", extra={"log_data": {...}})
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str, stream: TextIO = sys.stdout) -> None:
    """
    Install the JSON formatter on the root logger.

    With the stdio transport stdout carries the MCP protocol itself, so logs
    must go to stderr there.
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONLogFormatter())
    logging.basicConfig(level=getattr(logging, level.upper()), handlers=[handler], force=True)


# ---------------------------------------------------------------------------
# Caller admission middleware
# ---------------------------------------------------------------------------


class AuthMiddleware(Middleware):
    """
    Admits only callers with a valid Bearer JWT.

    Both tools/list and tools/call are checked: a caller without a token
    neither sees nor invokes anything. Once admitted, a caller may use every
    tool; the Quran tools need no per-caller authorization.
    """

    def _get_auth_header(self) -> str | None:
        # Returns None if there is no HTTP request (e.g. stdio transport).
        try:
            request = get_http_request()
            return request.headers.get("authorization")
        except RuntimeError:
            return None

    def _authenticate(self, request_id: str, method: str) -> Caller:
        try:
            caller = authenticate_caller(self._get_auth_header())
        except AuthError as e:
            logger.warning(
                "Authentication failed",
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "method": method,
                        "decision": "rejected",
                        "reason": e.message,
                    }
                },
            )
            raise

        logger.info(
            "Caller admitted",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "method": method,
                    "subject": caller.subject,
                    "decision": "admitted",
                }
            },
        )
        return caller

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        self._authenticate(str(uuid.uuid4())[:8], "tools/list")
        return await call_next(context)

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        caller = self._authenticate(request_id, "tools/call")
        logger.info(
            "Tool call started",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "subject": caller.subject,
                    "tool": context.message.name,
                }
            },
        )
        return await call_next(context)


# ---------------------------------------------------------------------------
# Envelope -> MCP result
# ---------------------------------------------------------------------------


def to_tool_result(response: ToolResponse) -> ToolResult:
    """
    Convert a ToolResponse into what FastMCP sends back to the caller.

    Error envelopes are raised as ToolError: FastMCP turns that into a normal
    tools/call result with isError=true and our diagnostic text, not a
    JSON-RPC protocol error.
    """
    if response.is_error:
        raise ToolError(response.text)

    content: list[TextContent | ImageContent] = []
    for block in response.content_blocks:
        if block.kind == "text":
            content.append(TextContent(type="text", text=block.payload))
        else:
            content.append(
                ImageContent(
                    type="image",
                    data=block.payload,
                    mimeType=block.mime_type or "application/octet-stream",
                )
            )
    return ToolResult(content=content)


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_server(
    quran_config: QuranConfig,
    cache: ClientCache | None = None,
    auth_enabled: bool | None = None,
) -> FastMCP:
    """
    Build the MCP server for one Quran configuration.

    Args:
        quran_config: Validated Quran API configuration
        cache: Client cache shared by all tool calls; a new one if omitted
        auth_enabled: Install the JWT admission middleware
                      (defaults to MCP_AUTH_ENABLED)
    """
    if cache is None:
        cache = ClientCache()
    if auth_enabled is None:
        auth_enabled = settings.auth_enabled

    @asynccontextmanager
    async def close_client_on_shutdown(server: FastMCP):
        try:
            yield {}
        finally:
            await cache.aclose()

    mcp = FastMCP(
        name="quran-mcp",
        instructions=(
            "Access to the Holy Quran via the Quran Foundation API. Use "
            f"{GET_TRANSLATIONS_TOOL} to discover translation IDs, then "
            f"{GET_VERSE_TOOL} to fetch verses with translations, tafsir and "
            "word-by-word breakdowns."
        ),
        middleware=[AuthMiddleware()] if auth_enabled else [],
        lifespan=close_client_on_shutdown,
    )

    @mcp.tool(
        name=GET_VERSE_TOOL,
        description=(
            "Fetch a Quranic verse by its key (chapter:verse format, e.g., '2:255' for "
            "Ayat al-Kursi). Optionally include translations, word-by-word breakdown, and "
            f"tafsir (commentary). To find translation IDs, use {GET_TRANSLATIONS_TOOL} first."
        ),
    )
    async def get_verse_tool(
        verse_key: Annotated[
            str,
            Field(
                description="The verse key in 'chapter:verse' format (e.g., '2:255', '1:1')",
                pattern=VERSE_KEY_PATTERN,
            ),
        ],
        translations: Annotated[
            list[int] | None,
            Field(
                description=(
                    "Translation IDs to include. Common IDs: 20=English Sahih International, "
                    "234=Urdu Jalandhari, 85=English Abdel Haleem."
                )
            ),
        ] = None,
        include_words: Annotated[
            bool, Field(description="Whether to include word-by-word breakdown of the verse")
        ] = False,
        include_tafsir: Annotated[
            bool, Field(description="Whether to include tafsir (commentary) for the verse")
        ] = False,
        tafsir_ids: Annotated[
            list[int] | None,
            Field(
                description=(
                    "Tafsir IDs to include (e.g., [169] for Tafsir Ibn Kathir). "
                    "Only used when include_tafsir is true."
                )
            ),
        ] = None,
    ) -> ToolResult:
        response = await get_verse(
            cache,
            quran_config,
            verse_key,
            translations=translations,
            include_words=include_words,
            include_tafsir=include_tafsir,
            tafsir_ids=tafsir_ids,
        )
        return to_tool_result(response)

    @mcp.tool(
        name=GET_TRANSLATIONS_TOOL,
        description=(
            "Get all available Quran translations with their IDs, optionally filtered by "
            f"language. Use this to find translation IDs before calling {GET_VERSE_TOOL}."
        ),
    )
    async def get_available_translations_tool(
        language: Annotated[
            str | None,
            Field(
                description=(
                    "Filter by language name (e.g., 'english', 'urdu', 'french'). "
                    "Leave empty to list all translations."
                )
            ),
        ] = None,
    ) -> ToolResult:
        response = await get_available_translations(cache, quran_config, language=language)
        return to_tool_result(response)

    # -----------------------------------------------------------------------
    # Health and readiness endpoints
    # -----------------------------------------------------------------------
    # Plain HTTP, no authentication: probes don't carry a JWT and these
    # endpoints expose nothing sensitive.

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: reports which Quran API environment this pod serves."""
        environment = quran_config.environment or QuranEnvironment.PRODUCTION
        return JSONResponse(
            {
                "status": "ready",
                "environment": environment.value,
                "content_base_url": resolve_endpoints(environment).content_base_url,
            }
        )

    return mcp


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------


def main() -> None:
    configure_logging(
        settings.log_level,
        stream=sys.stderr if settings.transport == "stdio" else sys.stdout,
    )

    # Missing credentials are fatal before any tool is registered.
    try:
        quran_config = load_quran_config(quran_settings)
    except ConfigurationError as e:
        logger.critical("Cannot start server: %s", e)
        sys.exit(1)

    environment = (quran_config.environment or QuranEnvironment.PRODUCTION).value

    if settings.transport == "stdio":
        # No HTTP headers over stdio, so there is no token to check.
        mcp = create_server(quran_config, auth_enabled=False)
        logger.info("Starting MCP server (transport=stdio, quran_env=%s)", environment)
        mcp.run(transport="stdio")
        return

    mcp = create_server(quran_config)

    logger.info(
        "Starting MCP server on %s:%d (transport=streamable-http, auth=%s, quran_env=%s)",
        settings.host,
        settings.port,
        "enabled" if settings.auth_enabled else "disabled",
        environment,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
