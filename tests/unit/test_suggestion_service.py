"""
Unit tests for suggestions and import auto-matching.

Run: pytest tests/unit/test_suggestion_service.py -v
"""

import pytest

from exceptions import DatabaseError
from services.suggestion_service import (
    FlattenedEntry,
    SuggestionService,
    auto_match,
    confidence_from_score,
    confidence_level,
    flatten_catalog,
    get_suggestion_service,
    suggest,
)
from tests.factories import CustomerFactory, LocationFactory


@pytest.fixture
def flattened() -> list:
    return [
        FlattenedEntry("c9", "Harbour Facilities", "l9", "Dockside Depot", "1 Wharf Rd"),
        FlattenedEntry("c1", "Acme Pty Ltd", "l1", "Melbourne CBD Office", None),
        FlattenedEntry("c1", "Acme Pty Ltd", "l2", "Sydney Warehouse", "4 Dock Rd"),
        FlattenedEntry("c2", "Bright Office Services", "l3", "Brisbane Depot", "88 Queen St"),
    ]


class TestConfidence:
    """Tests for confidence_from_score() and confidence_level()"""

    @pytest.mark.parametrize("score,expected", [
        (0.0, 100),
        (1.0, 0),
        (0.5, 50),
        (0.125, 88),
        (0.25, 75),
    ])
    def test_rounds_to_percent(self, score, expected):
        assert confidence_from_score(score) == expected

    def test_clamped_to_range(self):
        assert confidence_from_score(-0.2) == 100
        assert confidence_from_score(1.5) == 0

    @pytest.mark.parametrize("percent,level", [
        (100, "high"),
        (80, "high"),
        (79, "medium"),
        (50, "medium"),
        (49, "low"),
        (0, "low"),
    ])
    def test_levels(self, percent, level):
        assert confidence_level(percent) == level


class TestFlattenCatalog:
    """Tests for flatten_catalog()"""

    def test_joins_children_to_parents(self, sample_customers, sample_locations):
        flat = flatten_catalog(sample_customers, sample_locations)

        assert [(e.parent_key, e.child_key) for e in flat] == [("c1", "l1"), ("c1", "l2"), ("c2", "l3")]
        assert flat[0].parent_label == "Acme Cleaning Co"
        assert flat[0].child_detail == "12 Collins St Melbourne"

    def test_orphan_children_are_dropped(self, sample_customers):
        orphan = LocationFactory.create(id="lx", customer_id="missing")

        assert flatten_catalog(sample_customers, [orphan]) == []

    def test_blob_combines_parent_and_child(self):
        entry = FlattenedEntry("c1", "Acme Pty Ltd", "l1", "Melbourne CBD Office", None)

        assert entry.blob == "acme pty ltd melbourne cbd office"


class TestSuggest:
    """Tests for suggest()"""

    def test_acme_melb_office_is_suggested(self, flattened):
        suggestions = suggest("acme melb office", flattened)

        top3 = [(s.parent_key, s.child_key) for s in suggestions]
        assert ("c1", "l1") in top3
        hit = next(s for s in suggestions if s.child_key == "l1")
        assert hit.confidence_percent >= 50

    def test_best_suggestion_first(self, flattened):
        suggestions = suggest("acme melb office", flattened)

        assert suggestions[0].child_key == "l1"
        scores = [s.score for s in suggestions]
        assert scores == sorted(scores)

    def test_at_most_limit(self):
        many = [
            FlattenedEntry("c1", "Acme Pty Ltd", f"l{i}", f"Acme Site {i}", None)
            for i in range(10)
        ]

        assert len(suggest("acme site", many)) == 3
        assert len(suggest("acme site", many, limit=5)) == 5

    def test_confidence_in_range(self, flattened):
        for suggestion in suggest("brisbane depo", flattened):
            assert 0 <= suggestion.confidence_percent <= 100
            assert suggestion.confidence_level in ("high", "medium", "low")

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input_gives_nothing(self, flattened, text):
        assert suggest(text, flattened) == []

    def test_empty_catalog_gives_nothing(self):
        assert suggest("acme", []) == []

    def test_nothing_close_gives_nothing(self, flattened):
        assert suggest("zzzz qqqq", flattened) == []


class TestAutoMatch:
    """Tests for auto_match()"""

    @pytest.fixture
    def parents(self) -> list:
        return [
            {"id": "c1", "name": "Acme Cleaning Co"},
            {"id": "c2", "name": "Bright Office Services"},
        ]

    @pytest.fixture
    def children(self) -> list:
        return [
            {"id": "l1", "customer_id": "c1", "name": "Melbourne Office"},
            {"id": "l2", "customer_id": "c1", "name": "Sydney Warehouse"},
            {"id": "l3", "customer_id": "c2", "name": "Melbourne Depot"},
        ]

    def test_customer_then_location(self, parents, children):
        result = auto_match("Acme Cleaning", "Melbourne Office", parents, children)

        assert result.status == "matched"
        assert result.parent_key == "c1"
        assert result.child_key == "l1"
        assert result.confidence_percent >= 90

    def test_location_only_searched_within_customer(self, parents, children):
        result = auto_match("Acme Cleaning", "Melbourne Depot", parents, children)

        assert result.parent_key == "c1"
        assert result.child_key != "l3"

    def test_unknown_customer_is_pending(self, parents, children):
        result = auto_match("Zzzz Qqqq", "Melbourne Office", parents, children)

        assert result.status == "pending"
        assert result.parent_key is None

    def test_customer_below_min_confidence_is_pending(self, parents, children):
        result = auto_match("Acme Cleaning", "Melbourne Office", parents, children, min_confidence=100)

        assert result.status == "pending"
        assert result.parent_key is None

    def test_missing_location_keeps_customer(self, parents, children):
        result = auto_match("Acme Cleaning", "", parents, children)

        assert result.status == "pending"
        assert result.parent_key == "c1"
        assert result.child_key is None


class TestSuggestionService:
    """Tests for SuggestionService with a mocked database"""

    def test_suggest_for_entry(self, mock_supabase):
        mock_supabase.set_table_data("customers", [
            CustomerFactory.create(id="c1", name="Acme Pty Ltd"),
        ])
        mock_supabase.set_table_data("customer_locations", [
            LocationFactory.create(id="l1", customer_id="c1", name="Melbourne CBD Office"),
        ])
        service = SuggestionService(client=mock_supabase)

        suggestions = service.suggest_for_entry("acme melb office")

        assert suggestions[0].child_key == "l1"
        assert suggestions[0].confidence_percent >= 50

    def test_inactive_locations_are_not_suggested(self, mock_supabase):
        mock_supabase.set_table_data("customers", [
            CustomerFactory.create(id="c1", name="Acme Pty Ltd"),
        ])
        mock_supabase.set_table_data("customer_locations", [
            LocationFactory.create(id="l1", customer_id="c1", name="Melbourne CBD Office", is_active=False),
        ])
        service = SuggestionService(client=mock_supabase)

        assert service.suggest_for_entry("acme melb office") == []

    def test_blank_entry_does_not_query(self, mock_supabase):
        service = SuggestionService(client=mock_supabase)

        assert service.suggest_for_entry("  ") == []
        assert mock_supabase.calls == []

    def test_database_failure_raises(self, mock_supabase):
        mock_supabase.set_table_error("customers", RuntimeError("timeout"))
        service = SuggestionService(client=mock_supabase)

        with pytest.raises(DatabaseError) as exc_info:
            service.suggest_for_entry("acme")

        assert exc_info.value.code == "DATABASE_ERROR"

    def test_singleton(self, mock_db):
        assert get_suggestion_service() is get_suggestion_service()
