"""
Tests for Qdrant semantic search.

The Qdrant client is replaced with an AsyncMock; responses are chosen by
the entity types in the query filter.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from novel_memory.core.vector_search import CATEGORY_TYPES, QdrantSemanticSearch
from novel_memory.models import SearchOptions
from novel_memory.utils.exceptions import VectorSearchError


def point(point_id, score, **payload):
    return MagicMock(id=point_id, score=score, payload=payload)


def collections(*names):
    response = MagicMock()
    response.collections = []
    for name in names:
        collection = MagicMock()
        collection.name = name
        response.collections.append(collection)
    return response


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed_queries = AsyncMock(side_effect=lambda queries: [[0.1] * 4 for _ in queries])
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def qdrant_search(embedder):
    search = QdrantSemanticSearch(embedder=embedder, collection_name="novel_entities")
    search.client = AsyncMock()
    return search


def respond_by_type(points_by_type):
    """query_points side effect returning points for the filter's entity types."""

    async def query_points(**kwargs):
        types = kwargs["query_filter"].must[1].match.any
        hits = [p for t in types for p in points_by_type.get(t, [])]
        return MagicMock(points=hits)

    return query_points


@pytest.mark.unit
@pytest.mark.asyncio
class TestQdrantReadiness:
    """Tests for is_ready."""

    async def test_ready(self, qdrant_search):
        qdrant_search.client.get_collections.return_value = collections("novel_entities")
        assert await qdrant_search.is_ready() is True

    async def test_missing_collection(self, qdrant_search):
        qdrant_search.client.get_collections.return_value = collections("other")
        assert await qdrant_search.is_ready() is False

    async def test_unreachable(self, qdrant_search):
        qdrant_search.client.get_collections.side_effect = ConnectionError("refused")
        assert await qdrant_search.is_ready() is False

    async def test_connect_creates_client(self, embedder):
        search = QdrantSemanticSearch(embedder=embedder, host="qdrant", port=6334, use_grpc=True)
        with patch("novel_memory.core.vector_search.qdrant.AsyncQdrantClient") as mock_client:
            await search.connect()

            mock_client.assert_called_once_with(host="qdrant", port=6334, prefer_grpc=True, timeout=30)
            assert search.client is mock_client.return_value


@pytest.mark.unit
@pytest.mark.asyncio
class TestQdrantSearch:
    """Tests for search."""

    async def test_groups_by_category(self, qdrant_search, embedder):
        qdrant_search.client.query_points.side_effect = respond_by_type(
            {
                "character": [point("p1", 0.9, entity_id="char-mei", name="Mei Lin", type="character",
                                    novel_id="novel-1", cultivation="Qi Condensation")],
                "territory": [point("p2", 0.7, entity_id="terr-valley", name="Crimson Valley", type="territory")],
                "story_thread": [point("p3", 0.8, entity_id="thread-feud", name="Feud", type="story_thread",
                                       status="active")],
                "technique": [point("p4", 0.6, entity_id="tech-palm", name="Azure Flame Palm", type="technique")],
            }
        )

        results = await qdrant_search.search("novel-1", ["Who is Mei Lin?"])

        assert [r.id for r in results.characters] == ["char-mei"]
        assert results.characters[0].metadata == {"cultivation": "Qi Condensation"}
        assert [r.id for r in results.world_entries] == ["terr-valley"]
        assert results.plot_elements[0].metadata == {"status": "active"}
        assert [r.name for r in results.power_elements] == ["Azure Flame Palm"]
        assert qdrant_search.client.query_points.call_count == len(CATEGORY_TYPES)
        embedder.embed_queries.assert_awaited_once_with(["Who is Mei Lin?"])

    async def test_filter_and_limits(self, qdrant_search):
        qdrant_search.client.query_points.side_effect = respond_by_type({})

        await qdrant_search.search(
            "novel-1", ["q"], SearchOptions(max_characters=2, min_score=0.3)
        )

        calls = {
            tuple(c.kwargs["query_filter"].must[1].match.any): c.kwargs
            for c in qdrant_search.client.query_points.call_args_list
        }
        character_call = calls[("character",)]
        assert character_call["limit"] == 2
        assert character_call["score_threshold"] == 0.3
        assert character_call["collection_name"] == "novel_entities"
        assert character_call["query_filter"].must[0].match.value == "novel-1"

    async def test_merges_hits_across_queries(self, qdrant_search):
        responses = iter([0.6, 0.9])

        async def query_points(**kwargs):
            types = kwargs["query_filter"].must[1].match.any
            if types != ["character"]:
                return MagicMock(points=[])
            return MagicMock(
                points=[point("p1", next(responses), entity_id="char-mei", name="Mei Lin", type="character")]
            )

        qdrant_search.client.query_points.side_effect = query_points

        results = await qdrant_search.search("novel-1", ["first", "second"])

        assert len(results.characters) == 1
        assert results.characters[0].score == pytest.approx(0.9)

    async def test_ranked_and_truncated(self, qdrant_search):
        qdrant_search.client.query_points.side_effect = respond_by_type(
            {
                "item": [
                    point("a", 0.55, name="A", type="item"),
                    point("b", 0.95, name="B", type="item"),
                    point("c", 0.75, name="C", type="item"),
                ]
            }
        )

        results = await qdrant_search.search("novel-1", ["q"], SearchOptions(max_power_elements=2))

        assert [r.id for r in results.power_elements] == ["b", "c"]

    async def test_below_threshold_dropped(self, qdrant_search):
        qdrant_search.client.query_points.side_effect = respond_by_type(
            {"arc": [point("a", 0.2, name="Old Arc", type="arc")]}
        )
        results = await qdrant_search.search("novel-1", ["q"])
        assert results.plot_elements == []

    async def test_blank_queries_skip_backend(self, qdrant_search, embedder):
        results = await qdrant_search.search("novel-1", ["", "  "])

        assert results.is_empty()
        embedder.embed_queries.assert_not_awaited()
        qdrant_search.client.query_points.assert_not_called()

    async def test_zero_limit_skips_category(self, qdrant_search):
        qdrant_search.client.query_points.side_effect = respond_by_type({})

        await qdrant_search.search(
            "novel-1",
            ["q"],
            SearchOptions(max_characters=0, max_world_entries=0, max_plot_elements=0),
        )
        assert qdrant_search.client.query_points.call_count == 1

    async def test_backend_error_wrapped(self, qdrant_search):
        qdrant_search.client.query_points.side_effect = RuntimeError("collection missing")

        with pytest.raises(VectorSearchError, match="Qdrant query failed"):
            await qdrant_search.search("novel-1", ["q"])

    async def test_close(self, qdrant_search, embedder):
        client = qdrant_search.client
        await qdrant_search.close()

        client.close.assert_awaited_once()
        embedder.close.assert_awaited_once()
        assert qdrant_search.client is None
