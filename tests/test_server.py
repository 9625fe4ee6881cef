"""
Tests for the MCP server tools.
"""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from patent_engine import server
from patent_engine.core.models import CandidateRecord, ResultSet


@pytest.fixture
def no_inpi_credentials(monkeypatch):
    monkeypatch.delenv("INPI_USERNAME", raising=False)
    monkeypatch.delenv("INPI_PASSWORD", raising=False)


class TestSources:
    """Tests for source construction."""

    def test_patentscope(self):
        """Test the PatentScope descriptor."""
        descriptor = server.build_source("patentscope", max_pages=2)

        assert descriptor.name == "PatentScope"
        assert not descriptor.requires_auth
        assert descriptor.max_pages == 2

    def test_inpi_with_credentials(self, monkeypatch):
        """Test INPI credentials come from the environment."""
        monkeypatch.setenv("INPI_USERNAME", "alice")
        monkeypatch.setenv("INPI_PASSWORD", "s3cret")

        descriptor = server.build_source("inpi")

        assert descriptor.requires_auth
        assert descriptor.credentials.username == "alice"
        assert descriptor.entry_url != descriptor.search_url

    def test_inpi_without_credentials(self, no_inpi_credentials):
        """Test INPI without configured credentials."""
        assert server.get_inpi_credentials() is None
        assert server.build_source("inpi").credentials is None

    def test_unknown_source(self):
        """Test an unsupported source name."""
        with pytest.raises(ValueError):
            server.build_source("espacenet")


class TestTools:
    """Tests for the tool handlers."""

    @pytest.mark.asyncio
    async def test_list_tools(self):
        """Test the advertised tools."""
        tools = await server.list_tools()

        assert [tool.name for tool in tools] == ["search_patents", "search_all"]
        assert tools[0].inputSchema["required"] == ["source", "query"]

    def test_result_to_content(self):
        """Test the JSON payload of a result."""
        result = ResultSet(records=(CandidateRecord("WO2020123456", title="Ibuprofen lysinate"),))

        content = server.result_to_content("ibuprofen", "patentscope", result)

        payload = json.loads(content[0].text)
        assert payload["query"] == "ibuprofen"
        assert payload["status"] == "OK"
        assert payload["count"] == 1
        assert payload["records"][0]["title"] == "Ibuprofen lysinate"

    @pytest.mark.asyncio
    async def test_search_patents(self):
        """Test the single-source tool."""
        engine = MagicMock()
        engine.search = AsyncMock(return_value=ResultSet.no_results("PatentScope"))

        with patch.object(server.PatentSearchEngine, "from_config", return_value=engine):
            content = await server.call_tool("search_patents", {"source": "patentscope", "query": "xyzzy"})

        payload = json.loads(content[0].text)
        assert payload["status"] == "NO_RESULTS"
        descriptor, query = engine.search.call_args.args
        assert descriptor.name == "PatentScope"
        assert query == "xyzzy"

    @pytest.mark.asyncio
    async def test_search_all_skips_inpi_without_credentials(self, no_inpi_credentials):
        """Test the multi-source tool."""
        engine = MagicMock()
        engine.search_many = AsyncMock(return_value={"PatentScope": ResultSet.error("Timed out", "PatentScope")})

        with patch.object(server.PatentSearchEngine, "from_config", return_value=engine):
            content = await server.call_tool("search_all", {"query": "ibuprofen"})

        payload = json.loads(content[0].text)
        assert payload["results"]["PatentScope"]["status"] == "ERROR"
        descriptors, _ = engine.search_many.call_args.args
        assert [d.name for d in descriptors] == ["PatentScope"]

    @pytest.mark.asyncio
    async def test_unknown_source_is_reported(self):
        """Test that tool errors come back as JSON."""
        with patch.object(server.PatentSearchEngine, "from_config", return_value=MagicMock()):
            content = await server.call_tool("search_patents", {"source": "espacenet", "query": "x"})

        payload = json.loads(content[0].text)
        assert "Unknown source" in payload["error"]
        assert payload["tool"] == "search_patents"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        """Test an unknown tool name."""
        with patch.object(server.PatentSearchEngine, "from_config", return_value=MagicMock()):
            content = await server.call_tool("delete_everything", {"query": "x"})

        assert "Unknown tool" in json.loads(content[0].text)["error"]
