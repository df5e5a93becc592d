"""
"Did you mean" spell correction.

A word-frequency corpus is built from catalog titles/descriptions plus
recent queries that returned results (weighted higher). For each query
word, close corpus words (normalized Levenshtein similarity) are tried as
substitutions; a substitution is suggested only if its estimated result
count clearly beats the current one.

The corpus is an immutable snapshot. CorpusStore rebuilds it lazily once
stale and swaps the new snapshot in under a lock, so readers never observe
a half-built corpus and concurrent requests trigger at most one rebuild.
Corpus builds and candidate scans run on the default executor.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from catalog_search.search.config import SpellingConfig
from catalog_search.search.types import DidYouMeanResponse, SpellingSuggestion

logger = logging.getLogger(__name__)

# Alphanumeric runs (underscore excluded)
WORD_PATTERN = re.compile(r"[^\W_]+")
MIN_WORD_LENGTH = 3

# Candidate ranking: similarity vs corpus frequency
CANDIDATE_SIMILARITY_WEIGHT = 0.7
CANDIDATE_FREQUENCY_WEIGHT = 0.3
FREQUENCY_SATURATION = 100.0

# Suggestion ranking: confidence vs expected results
SUGGESTION_CONFIDENCE_WEIGHT = 0.6
SUGGESTION_RESULTS_WEIGHT = 0.4
RESULTS_SCALE = 100.0


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit-cost insertion, deletion and substitution."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(
                    previous[j - 1] + 1,  # substitution
                    current[j - 1] + 1,   # insertion
                    previous[j] + 1,      # deletion
                ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / max(len(a), len(b)), case-insensitive. Two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a.lower(), b.lower()) / longest


def extract_words(text: Optional[str]) -> List[str]:
    """Lowercased alphanumeric words longer than two characters."""
    if not text:
        return []
    return [w for w in WORD_PATTERN.findall(text.lower()) if len(w) >= MIN_WORD_LENGTH]


def replace_word(query: str, word: str, replacement: str) -> str:
    """Replace whole-word occurrences of word (case-insensitive)."""
    pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    return pattern.sub(lambda _: replacement, query)


@dataclass(frozen=True)
class WordCandidate:
    word: str
    similarity: float
    frequency: int

    @property
    def rank(self) -> float:
        return (
            self.similarity * CANDIDATE_SIMILARITY_WEIGHT
            + min(self.frequency / FREQUENCY_SATURATION, 1.0) * CANDIDATE_FREQUENCY_WEIGHT
        )


class Corpus:
    """Immutable word -> frequency snapshot."""

    def __init__(self, frequencies: Optional[Mapping[str, int]] = None, built_at: Optional[datetime] = None):
        self._frequencies = MappingProxyType(dict(frequencies or {}))
        self.built_at = built_at

    @classmethod
    def build(
        cls,
        texts: Iterable[str],
        successful_queries: Iterable[str] = (),
        query_weight: int = 2,
        built_at: Optional[datetime] = None,
    ) -> "Corpus":
        frequencies: Dict[str, int] = {}
        for text in texts:
            for word in extract_words(text):
                frequencies[word] = frequencies.get(word, 0) + 1
        for text in successful_queries:
            for word in extract_words(text):
                frequencies[word] = frequencies.get(word, 0) + query_weight
        return cls(frequencies, built_at or datetime.utcnow())

    @property
    def frequencies(self) -> Mapping[str, int]:
        return self._frequencies

    def __len__(self) -> int:
        return len(self._frequencies)

    def __contains__(self, word: str) -> bool:
        return word in self._frequencies

    def is_stale(self, now: datetime, interval_seconds: float) -> bool:
        if self.built_at is None:
            return True
        return (now - self.built_at).total_seconds() >= interval_seconds

    def candidates(self, word: str, min_similarity: float = 0.7, limit: int = 5) -> List[WordCandidate]:
        """
        Corpus words similar to word, best first.

        Words whose length differs by more than max(1, len(word) // 4) are
        skipped without computing a distance.
        """
        word = word.lower()
        max_length_diff = max(1, len(word) // 4)
        found = []
        for corpus_word, frequency in self._frequencies.items():
            if corpus_word == word or abs(len(corpus_word) - len(word)) > max_length_diff:
                continue
            score = similarity(word, corpus_word)
            if score > min_similarity:
                found.append(WordCandidate(corpus_word, score, frequency))

        found.sort(key=lambda c: (-c.rank, c.word))
        return found[:limit]


@dataclass(frozen=True)
class CorpusSource:
    """Raw material for a corpus build."""
    texts: List[str] = field(default_factory=list)
    successful_queries: List[str] = field(default_factory=list)


# Blocking loader (runs in the default executor)
CorpusLoader = Callable[[], CorpusSource]

# Estimated result count for a full query
ResultEstimator = Callable[[str], Awaitable[int]]


class CorpusStore:
    """Holds the current corpus snapshot and rebuilds it when stale."""

    def __init__(
        self,
        loader: CorpusLoader,
        refresh_seconds: float = 3600.0,
        successful_query_weight: int = 2,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._loader = loader
        self._refresh_seconds = refresh_seconds
        self._query_weight = successful_query_weight
        self._clock = clock
        self._corpus = Corpus()
        self._lock = asyncio.Lock()

    @property
    def corpus(self) -> Corpus:
        return self._corpus

    async def ensure_fresh(self) -> Corpus:
        """Current corpus, rebuilt first if the staleness interval elapsed."""
        corpus = self._corpus
        if not corpus.is_stale(self._clock(), self._refresh_seconds):
            return corpus

        async with self._lock:
            # Another request may have rebuilt while we waited
            corpus = self._corpus
            if not corpus.is_stale(self._clock(), self._refresh_seconds):
                return corpus
            return await self._rebuild()

    async def refresh(self) -> Corpus:
        """Rebuild now regardless of staleness."""
        async with self._lock:
            return await self._rebuild()

    def _load_and_build(self) -> Corpus:
        source = self._loader()
        return Corpus.build(
            source.texts,
            source.successful_queries,
            query_weight=self._query_weight,
            built_at=self._clock(),
        )

    async def _rebuild(self) -> Corpus:
        loop = asyncio.get_running_loop()
        try:
            corpus = await loop.run_in_executor(None, self._load_and_build)
        except Exception as e:
            # Keep serving the previous snapshot; retried on the next request
            logger.error(f"Failed to rebuild spelling corpus: {e}", exc_info=True)
            return self._corpus

        self._corpus = corpus
        logger.info(f"Spelling corpus rebuilt with {len(corpus)} unique words")
        return corpus


class SpellCorrectionService:
    """Produces "did you mean" suggestions for low-result queries."""

    def __init__(
        self,
        corpus_store: CorpusStore,
        estimator: ResultEstimator,
        config: Optional[SpellingConfig] = None,
        estimate_timeout_seconds: float = 5.0,
    ):
        self.corpus_store = corpus_store
        self.estimator = estimator
        self.config = config or SpellingConfig()
        self.estimate_timeout_seconds = estimate_timeout_seconds

    async def get_did_you_mean(self, query: str, current_result_count: int) -> DidYouMeanResponse:
        """
        Suggest a corrected query when the current one found few results.

        Args:
            query: The query as searched
            current_result_count: Results the query returned

        Returns:
            DidYouMeanResponse with the best suggestion and up to
            max_alternatives more, or has_alternative=False.
        """
        config = self.config
        if current_result_count > config.trigger_max_results:
            return DidYouMeanResponse(has_alternative=False)

        corpus = await self.corpus_store.ensure_fresh()
        # Candidate matching scans the whole corpus
        loop = asyncio.get_running_loop()
        substitutions = await loop.run_in_executor(None, self._substitutions, query, corpus)
        if not substitutions:
            return DidYouMeanResponse(has_alternative=False)

        counts = await asyncio.gather(
            *(self._estimate(corrected) for corrected, _ in substitutions)
        )

        threshold = current_result_count * config.improvement_factor
        suggestions = [
            SpellingSuggestion(
                original_query=query,
                suggested_query=corrected,
                confidence=candidate.similarity,
                expected_result_count=count,
                distance=levenshtein_distance(query, corrected),
            )
            for (corrected, candidate), count in zip(substitutions, counts)
            if count > threshold
        ]
        if not suggestions:
            return DidYouMeanResponse(has_alternative=False)

        suggestions.sort(key=lambda s: (
            -(s.confidence * SUGGESTION_CONFIDENCE_WEIGHT
              + (s.expected_result_count / RESULTS_SCALE) * SUGGESTION_RESULTS_WEIGHT),
            s.suggested_query,
        ))
        return DidYouMeanResponse(
            has_alternative=True,
            suggestion=suggestions[0],
            alternatives=suggestions[1:1 + config.max_alternatives],
        )

    def _substitutions(self, query: str, corpus: Corpus) -> List[Tuple[str, WordCandidate]]:
        """Full corrected queries, one per (word, candidate) pair, deduplicated."""
        seen = set()
        substitutions = []
        for word in dict.fromkeys(extract_words(query)):
            for candidate in corpus.candidates(
                word, self.config.min_similarity, self.config.max_candidates_per_word
            ):
                corrected = replace_word(query, word, candidate.word)
                if corrected == query or corrected in seen:
                    continue
                seen.add(corrected)
                substitutions.append((corrected, candidate))
        return substitutions

    async def _estimate(self, query: str) -> int:
        try:
            return await asyncio.wait_for(self.estimator(query), timeout=self.estimate_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Result estimate for {query!r} timed out; treating as 0")
            return 0
        except Exception as e:
            logger.warning(f"Result estimate for {query!r} failed: {e}; treating as 0")
            return 0
