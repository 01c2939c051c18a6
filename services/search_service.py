"""
Global search across catalogs.

Fans one query out to every requested catalog, scores the fetched rows and
hands them to the ranker. Catalog reads are the only suspension points;
they run concurrently in worker threads because the Supabase client is
synchronous.

A catalog that fails to load contributes no results and is reported in
RankedResults.unavailable_categories. It never fails the whole search.
"""

import asyncio
import copy
from typing import Iterable, Optional, Protocol
import structlog

from config import get_supabase_client, settings
from exceptions import CatalogUnavailableError
from services.catalogs import (
    CATALOGS,
    CatalogDescriptor,
    QueryHint,
    build_query_hint,
    build_record,
    passes_prefilter,
    prefilter_expression,
)
from services.result_ranker import MatchResult, RankedResults, rank_results
from services.search_cache_service import SearchCache
from services.similarity_scorer import GLOBAL_SEARCH_PRESET, SimilarityScorer
from utils.text_utils import tokenize

logger = structlog.get_logger(__name__)

MIN_QUERY_LENGTH = settings.search_min_query_length
FETCH_TIMEOUT_SECONDS = settings.search_fetch_timeout_seconds


class CatalogSource(Protocol):
    """Read-only access to one catalog."""

    def fetch(self, query_hint: QueryHint, limit: int) -> list[dict]:
        """Return up to `limit` rows that may pass `query_hint`."""
        ...


class SupabaseCatalogSource:
    """CatalogSource backed by a Supabase table."""

    def __init__(self, descriptor: CatalogDescriptor, client):
        self.descriptor = descriptor
        self.db = client

    def fetch(self, query_hint: QueryHint, limit: int) -> list[dict]:
        """
        Select rows whose blob fields may pass the hint.

        Own columns are filtered in one query. Each embedded join gets its
        own query filtered on the joined columns, since PostgREST cannot OR
        across a parent and an embed.

        Raises:
            CatalogUnavailableError: On any client or transport failure
        """
        descriptor = self.descriptor
        try:
            rows = []
            if descriptor.own_columns or query_hint.unrestricted:
                rows.extend(self._select(descriptor.select, descriptor.own_columns, query_hint, limit))
            if not query_hint.unrestricted:
                for relation, columns in descriptor.related_columns.items():
                    rows.extend(self._select(
                        descriptor.inner_select(relation),
                        columns,
                        query_hint,
                        limit,
                        relation=relation,
                    ))
            return _unique_rows(rows)
        except Exception as e:
            raise CatalogUnavailableError(descriptor.category, str(e)) from e

    def _select(
        self,
        select: str,
        columns: tuple[str, ...],
        query_hint: QueryHint,
        limit: int,
        relation: Optional[str] = None
    ) -> list[dict]:
        query = self.db.table(self.descriptor.table).select(select)
        if not query_hint.unrestricted:
            expression = prefilter_expression(columns, query_hint)
            if relation:
                query = query.or_(expression, reference_table=relation)
            else:
                query = query.or_(expression)
        result = query.limit(limit).execute()
        return result.data or []


def _unique_rows(rows: list[dict]) -> list[dict]:
    """First row per id, in fetch order."""
    seen = set()
    unique = []
    for row in rows:
        row_id = row.get("id")
        if row_id is not None and row_id in seen:
            continue
        seen.add(row_id)
        unique.append(row)
    return unique
class SearchService:
    """
    Resolution orchestrator.

    Usage:
        service = SearchService()
        results = await service.resolve("acme clean")
        results.flat        # ranked MatchResults
        results.grouped     # {"customer": [...], "location": [...]}
    """

    def __init__(
        self,
        client=None,
        scorer: Optional[SimilarityScorer] = None,
        cache: Optional[SearchCache] = None,
        sources: Optional[dict[str, CatalogSource]] = None,
        min_query_length: int = MIN_QUERY_LENGTH,
        fetch_timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self._client = client
        self.scorer = scorer or SimilarityScorer(GLOBAL_SEARCH_PRESET)
        self.cache = cache if cache is not None else SearchCache(settings.search_cache_ttl_seconds)
        self.sources = dict(sources or {})
        self.min_query_length = min_query_length
        self.fetch_timeout = fetch_timeout

    @property
    def db(self):
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def source_for(self, descriptor: CatalogDescriptor) -> CatalogSource:
        """Registered source for a category, else its Supabase table."""
        source = self.sources.get(descriptor.category)
        if source is None:
            source = SupabaseCatalogSource(descriptor, self.db)
        return source

    # ===================
    # RESOLVE
    # ===================

    async def resolve(
        self,
        query: Optional[str],
        categories: Optional[Iterable[CatalogDescriptor]] = None
    ) -> RankedResults:
        """
        Search the given catalogs for a query.

        Args:
            query: Raw user text
            categories: Descriptors to search; None means every catalog

        Returns:
            RankedResults (empty for queries below the minimum length)
        """
        descriptors = list(categories) if categories is not None else list(CATALOGS)
        text = (query or "").strip()

        if len(text) < self.min_query_length or not descriptors:
            logger.debug("search_short_circuit", length=len(text))
            return RankedResults()

        if not any(c.isalnum() for c in text):
            logger.debug("search_no_searchable_text", query=text)
            return RankedResults()

        cache_key = (text, tuple(d.category for d in descriptors))
        cached = self.cache.retrieve(cache_key)
        if cached is not None:
            logger.debug("search_cache_hit", query=text)
            return copy.deepcopy(cached)

        logger.info(
            "search_started",
            query=text,
            categories=[d.category for d in descriptors]
        )

        tokens = tokenize(text)
        hint = build_query_hint(tokens, self.scorer.config.threshold)

        fetched = await asyncio.gather(
            *(self._fetch_catalog(d, hint) for d in descriptors)
        )

        # Walk catalogs in request order so discovery order (the tie-break)
        # does not depend on which fetch finished first.
        matches: list[MatchResult] = []
        unavailable: list[str] = []

        for descriptor, rows in zip(descriptors, fetched):
            if rows is None:
                unavailable.append(descriptor.category)
                continue
            matches.extend(
                self._score_rows(descriptor, rows, hint, tokens, len(matches))
            )

        results = rank_results(matches, descriptors)
        results.unavailable_categories = unavailable

        if not unavailable:
            self.cache.store(cache_key, copy.deepcopy(results))

        logger.info(
            "search_resolved",
            query=text,
            matches=len(results.flat),
            groups={k: len(v) for k, v in results.grouped.items()},
            unavailable=unavailable
        )

        return results

    def _score_rows(
        self,
        descriptor: CatalogDescriptor,
        rows: list[dict],
        hint: QueryHint,
        tokens: list[str],
        start_sequence: int
    ) -> list[MatchResult]:
        matches = []
        sequence = start_sequence

        for row in rows:
            record = build_record(descriptor, row)
            if record is None:
                continue

            # Same predicate the server applied, over the whole blob; keeps
            # results independent of whether the source honoured the hint.
            if not passes_prefilter(record.blob, hint):
                continue

            score = self.scorer.score_tokens(tokens, record.blob)
            if score is None:
                continue

            matches.append(MatchResult(record=record, score=score, sequence=sequence))
            sequence += 1

        return matches

    async def _fetch_catalog(
        self,
        descriptor: CatalogDescriptor,
        hint: QueryHint
    ) -> Optional[list[dict]]:
        """Fetch one catalog; None means it was unavailable."""
        try:
            source = self.source_for(descriptor)
            rows = await asyncio.wait_for(
                asyncio.to_thread(source.fetch, hint, descriptor.result_cap),
                timeout=self.fetch_timeout,
            )
        except CatalogUnavailableError as e:
            logger.warning(
                "catalog_fetch_failed",
                category=descriptor.category,
                error=e.details.get("reason")
            )
            return None
        except asyncio.TimeoutError:
            logger.warning(
                "catalog_fetch_timeout",
                category=descriptor.category,
                timeout=self.fetch_timeout
            )
            return None
        except Exception as e:
            # Includes a Supabase client that cannot be created
            logger.warning(
                "catalog_fetch_failed",
                category=descriptor.category,
                error=str(e),
                error_type=type(e).__name__
            )
            return None

        return list(rows or [])[:descriptor.result_cap]


# Singleton instance for convenience
_search_service: Optional[SearchService] = None


def get_search_service() -> SearchService:
    """Get or create SearchService instance."""
    global _search_service
    if _search_service is None:
        _search_service = SearchService()
    return _search_service


async def resolve(
    query: Optional[str],
    categories: Optional[Iterable[CatalogDescriptor]] = None
) -> RankedResults:
    """Resolve a query with the shared SearchService."""
    return await get_search_service().resolve(query, categories)
