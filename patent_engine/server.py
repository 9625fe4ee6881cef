"""
Patent Engine - MCP Server Entry Point

Exposes the extraction engine as a Model Context Protocol (MCP) server.

Tools exposed:
- search_patents: Search one source (PatentScope or INPI) for a term
- search_all: Search every configured source concurrently

Each tool call builds its own engine and browser session; nothing is shared
between calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from patent_engine.core.config import EngineConfig
from patent_engine.core.engine import PatentSearchEngine
from patent_engine.core.models import Credentials, ResultSet, SourceDescriptor
from patent_engine.core.sources import inpi_source, patentscope_source

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger("patent_engine.server")

SOURCES = ("patentscope", "inpi")


def get_inpi_credentials() -> Optional[Credentials]:
    """INPI login from the environment, or None when not configured."""
    username = os.getenv("INPI_USERNAME")
    password = os.getenv("INPI_PASSWORD")
    if not username or not password:
        return None
    return Credentials(username=username, password=password)


def build_source(name: str, max_pages: int = 5) -> SourceDescriptor:
    """Descriptor for a source name accepted by the tools."""
    if name == "patentscope":
        return patentscope_source(max_pages=max_pages)
    if name == "inpi":
        return inpi_source(get_inpi_credentials(), max_pages=max_pages)
    raise ValueError(f"Unknown source: {name}")


def result_to_content(query: str, source: str, result: ResultSet) -> list[TextContent]:
    """Convert a ResultSet to MCP content."""
    payload = {"query": query, "source": source, **result.to_dict()}
    return [TextContent(type="text", text=json.dumps(payload, indent=2, ensure_ascii=False))]


# Create MCP Server
server = Server("patent-engine")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="search_patents",
            description="""Search one patent source for a term (e.g. a medicine name).

Sources:
- patentscope: WIPO PatentScope, no login needed
- inpi: INPI Brazil, needs INPI_USERNAME / INPI_PASSWORD on the server

Returns records with publication number, title, abstract, applicant, inventor and date.
An empty search returns a single NO_RESULTS record; a failed one a single ERROR record.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {
                        "type": "string",
                        "enum": list(SOURCES),
                        "description": "Source to search"
                    },
                    "query": {
                        "type": "string",
                        "description": "Search term (e.g. 'ibuprofen')"
                    },
                    "max_pages": {
                        "type": "integer",
                        "description": "Maximum result pages to walk (default: 5)",
                        "default": 5
                    }
                },
                "required": ["source", "query"]
            }
        ),
        Tool(
            name="search_all",
            description="""Search every source concurrently. INPI is skipped when no credentials are configured.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search term (e.g. 'ibuprofen')"
                    },
                    "max_pages": {
                        "type": "integer",
                        "description": "Maximum result pages to walk per source (default: 5)",
                        "default": 5
                    }
                },
                "required": ["query"]
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    logger.info(f"[Server] Tool called: {name}")

    try:
        engine = PatentSearchEngine.from_config(EngineConfig.from_env())
        query = arguments["query"]
        max_pages = int(arguments.get("max_pages", 5))

        if name == "search_patents":
            source = arguments["source"]
            result = await engine.search(build_source(source, max_pages), query)
            return result_to_content(query, source, result)

        elif name == "search_all":
            sources = ["patentscope"]
            if get_inpi_credentials() is not None:
                sources.append("inpi")
            descriptors = [build_source(source, max_pages) for source in sources]
            results = await engine.search_many(descriptors, query)
            payload = {
                "query": query,
                "results": {source_name: result.to_dict() for source_name, result in results.items()},
            }
            return [TextContent(type="text", text=json.dumps(payload, indent=2, ensure_ascii=False))]

        else:
            return [TextContent(
                type="text",
                text=json.dumps({"error": f"Unknown tool: {name}"})
            )]

    except Exception as e:
        logger.exception(f"[Server] Error in tool {name}: {e}")
        return [TextContent(
            type="text",
            text=json.dumps({
                "error": str(e),
                "tool": name
            })
        )]


async def main() -> None:
    """Main entry point for the MCP server."""
    logger.info("[Server] Starting Patent Engine MCP Server...")

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
