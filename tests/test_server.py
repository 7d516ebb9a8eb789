"""Tests for server-level functions."""

import pytest
from fastmcp import FastMCP

from knowledge_lifecycle.embeddings import OllamaEmbeddingClient, VoyageEmbeddingClient
from knowledge_lifecycle.server import _create_embedder, create_server, lifespan


def test_create_embedder_ollama():
    assert isinstance(_create_embedder("ollama"), OllamaEmbeddingClient)


def test_create_embedder_voyage():
    assert isinstance(_create_embedder("voyage"), VoyageEmbeddingClient)


def test_create_embedder_unknown_provider():
    assert _create_embedder("unknown") is None


def test_create_server(monkeypatch):
    monkeypatch.delenv("KL_MANAGER", raising=False)
    server = create_server()
    assert isinstance(server, FastMCP)
    assert server.name == "knowledge-lifecycle"


@pytest.mark.asyncio
async def test_lifespan_wires_services(tmp_path, monkeypatch):
    monkeypatch.setenv("KL_DB_PATH", str(tmp_path / "kl.db"))
    monkeypatch.setenv("KL_EMBEDDING_PROVIDER", "ollama")
    server = create_server()

    async with lifespan(server) as context:
        assert set(context) == {"db", "store", "embedder", "search", "detector", "archival"}
        assert context["detector"].search is context["search"]
        assert context["archival"].store is context["store"]
        assert isinstance(context["embedder"], OllamaEmbeddingClient)


@pytest.mark.asyncio
async def test_lifespan_unknown_provider(tmp_path, monkeypatch):
    monkeypatch.setenv("KL_DB_PATH", str(tmp_path / "kl.db"))
    monkeypatch.setenv("KL_EMBEDDING_PROVIDER", "nope")

    async with lifespan(create_server()) as context:
        assert context["embedder"] is None
        assert context["search"].embedder is None
