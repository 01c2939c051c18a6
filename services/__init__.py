"""
Resolution services.

Scoring, catalog fan-out, ranking, suggestions and header classification.
"""

from services.similarity_scorer import (
    SimilarityScorer,
    ScorerConfig,
    GLOBAL_SEARCH_PRESET,
    SUGGESTION_PRESET,
)
from services.catalogs import CATALOGS, CatalogDescriptor, get_catalogs
from services.result_ranker import MatchResult, RankedResults, rank_results
from services.search_service import SearchService, get_search_service, resolve
from services.suggestion_service import (
    SuggestionService,
    get_suggestion_service,
    suggest,
    auto_match,
)
from services.header_classifier import (
    TargetField,
    ImportMappingSession,
    classify_header,
    classify_frequency,
)
from services.query_coordinator import QueryCoordinator

__all__ = [
    "SimilarityScorer",
    "ScorerConfig",
    "GLOBAL_SEARCH_PRESET",
    "SUGGESTION_PRESET",
    "CATALOGS",
    "CatalogDescriptor",
    "get_catalogs",
    "MatchResult",
    "RankedResults",
    "rank_results",
    "SearchService",
    "get_search_service",
    "resolve",
    "SuggestionService",
    "get_suggestion_service",
    "suggest",
    "auto_match",
    "TargetField",
    "ImportMappingSession",
    "classify_header",
    "classify_frequency",
    "QueryCoordinator",
]
