"""
Unit tests for spell correction.
"""
import asyncio
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from catalog_search.search.config import SpellingConfig
from catalog_search.search.spelling import (
    Corpus,
    CorpusSource,
    CorpusStore,
    SpellCorrectionService,
    extract_words,
    levenshtein_distance,
    replace_word,
    similarity,
)


def store_with(texts, queries=()):
    loader = MagicMock(return_value=CorpusSource(texts=list(texts), successful_queries=list(queries)))
    return CorpusStore(loader, refresh_seconds=3600)


class TestLevenshtein:

    @pytest.mark.unit
    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("design", "design", 0),
        ("dsign", "design", 1),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
    ])
    def test_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    @pytest.mark.unit
    def test_similarity(self):
        assert similarity("dsign", "design") == pytest.approx(1 - 1 / 6)
        assert similarity("", "") == 1.0
        assert similarity("Logo", "logo") == 1.0


class TestExtractWords:

    @pytest.mark.unit
    def test_lowercases_and_drops_short_words(self):
        assert extract_words("A Logo of the Brand, v2!") == ["logo", "the", "brand"]

    @pytest.mark.unit
    def test_empty(self):
        assert extract_words(None) == []
        assert extract_words("") == []

    @pytest.mark.unit
    def test_replace_word_whole_word_case_insensitive(self):
        assert replace_word("Logo dsign dsigner", "dsign", "design") == "Logo design dsigner"


class TestCorpus:

    @pytest.mark.unit
    def test_build_weights_successful_queries(self):
        corpus = Corpus.build(["logo design", "design"], ["design brief"], query_weight=2)

        assert corpus.frequencies["design"] == 4
        assert corpus.frequencies["logo"] == 1
        assert corpus.frequencies["brief"] == 2

    @pytest.mark.unit
    def test_candidates_filtered_and_ranked(self):
        corpus = Corpus({"design": 50, "resign": 1, "dessert": 10, "logo": 5})
        candidates = corpus.candidates("dsign", min_similarity=0.6)

        words = [c.word for c in candidates]
        assert words[0] == "design"
        assert "logo" not in words

    @pytest.mark.unit
    def test_candidates_exclude_the_word_itself(self):
        corpus = Corpus({"design": 50})
        assert corpus.candidates("design") == []

    @pytest.mark.unit
    def test_empty_corpus_is_stale(self):
        assert Corpus().is_stale(datetime.utcnow(), 3600)

    @pytest.mark.unit
    def test_staleness_interval(self):
        built = datetime(2026, 1, 1)
        corpus = Corpus({"logo": 1}, built_at=built)

        assert not corpus.is_stale(built + timedelta(minutes=30), 3600)
        assert corpus.is_stale(built + timedelta(hours=1), 3600)

    @pytest.mark.unit
    def test_frequencies_are_read_only(self):
        corpus = Corpus({"logo": 1})
        with pytest.raises(TypeError):
            corpus.frequencies["logo"] = 5


class TestCorpusStore:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_builds_lazily_once(self):
        store = store_with(["logo design"])

        first = await store.ensure_fresh()
        second = await store.ensure_fresh()

        assert "design" in first
        assert first is second
        assert store._loader.call_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_requests_rebuild_once(self):
        store = store_with(["logo design"])

        corpora = await asyncio.gather(*(store.ensure_fresh() for _ in range(10)))

        assert store._loader.call_count == 1
        assert all(c is corpora[0] for c in corpora)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_rebuild_keeps_previous_corpus(self):
        store = store_with(["logo design"])
        original = await store.ensure_fresh()

        store._loader.side_effect = RuntimeError("database unavailable")
        result = await store.refresh()

        assert result is original
        assert store.corpus is original

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_initial_build_retried_next_request(self):
        loader = MagicMock(side_effect=[
            RuntimeError("database unavailable"),
            CorpusSource(texts=["logo design"]),
        ])
        store = CorpusStore(loader, refresh_seconds=3600)

        empty = await store.ensure_fresh()
        rebuilt = await store.ensure_fresh()

        assert len(empty) == 0
        assert "design" in rebuilt
        assert loader.call_count == 2


class TestSpellCorrectionService:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_suggests_corrected_query(self):
        """A query with 0 results gets the corrected query suggested."""
        estimator = AsyncMock(return_value=12)
        service = SpellCorrectionService(store_with(["logo design", "design studio"]), estimator)

        response = await service.get_did_you_mean("logo dsign", 0)

        assert response.has_alternative is True
        assert response.suggestion.suggested_query == "logo design"
        assert response.suggestion.original_query == "logo dsign"
        assert response.suggestion.expected_result_count == 12
        assert response.suggestion.distance == 1
        assert response.suggestion.confidence == pytest.approx(1 - 1 / 6)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_alternative_above_trigger(self):
        estimator = AsyncMock(return_value=100)
        service = SpellCorrectionService(store_with(["logo design"]), estimator)

        response = await service.get_did_you_mean("logo dsign", 6)

        assert response.has_alternative is False
        estimator.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_twice_the_current_count(self):
        service = SpellCorrectionService(store_with(["logo design"]), AsyncMock(return_value=6))
        assert (await service.get_did_you_mean("logo dsign", 3)).has_alternative is False

        service = SpellCorrectionService(store_with(["logo design"]), AsyncMock(return_value=7))
        assert (await service.get_did_you_mean("logo dsign", 3)).has_alternative is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_estimate_counts_as_zero(self):
        estimator = AsyncMock(side_effect=RuntimeError("count failed"))
        service = SpellCorrectionService(store_with(["logo design"]), estimator)

        response = await service.get_did_you_mean("logo dsign", 0)

        assert response.has_alternative is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_slow_estimate_times_out(self):
        async def slow(query):
            await asyncio.sleep(5)
            return 100

        service = SpellCorrectionService(
            store_with(["logo design"]), slow, estimate_timeout_seconds=0.05
        )

        response = await service.get_did_you_mean("logo dsign", 0)

        assert response.has_alternative is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_alternatives_limited(self):
        corpus_texts = ["design", "resign", "desire", "ensign", "deign"]
        service = SpellCorrectionService(
            store_with(corpus_texts),
            AsyncMock(return_value=10),
            config=SpellingConfig(min_similarity=0.5),
        )

        response = await service.get_did_you_mean("dsign", 0)

        assert response.has_alternative is True
        assert len(response.alternatives) <= 2
        queries = [response.suggestion.suggested_query] + [a.suggested_query for a in response.alternatives]
        assert len(set(queries)) == len(queries)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_candidates(self):
        estimator = AsyncMock(return_value=10)
        service = SpellCorrectionService(store_with(["music"]), estimator)

        response = await service.get_did_you_mean("logo", 0)

        assert response.has_alternative is False
        estimator.assert_not_called()


class TestEventLoopResponsiveness:

    @staticmethod
    def five_letter_words(count):
        letters = "abcdefghijklmnopqrstuvwxyz"
        return [
            a + b + c + d + "s"
            for a in letters for b in letters for c in letters for d in letters
        ][:count]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_large_corpus_does_not_stall_other_tasks(self):
        """Corpus build and candidate scans leave the loop free for other requests."""
        store = store_with([" ".join(self.five_letter_words(40000))])
        service = SpellCorrectionService(store, AsyncMock(return_value=0))

        gaps = []
        done = asyncio.Event()

        async def ticker():
            loop = asyncio.get_running_loop()
            last = loop.time()
            while not done.is_set():
                await asyncio.sleep(0.005)
                now = loop.time()
                gaps.append(now - last)
                last = now

        ticking = asyncio.create_task(ticker())
        try:
            await service.get_did_you_mean("qwert asdfg zxcvb", 0)
        finally:
            done.set()
            await ticking

        assert gaps
        assert max(gaps) < 0.5
