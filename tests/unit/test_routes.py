"""
API tests for search and import routes.

Run: pytest tests/unit/test_routes.py -v
"""

from tests.factories import CustomerFactory, LocationFactory


class TestSearchRoute:
    """GET /api/search"""

    def test_returns_ranked_and_grouped_results(self, test_client_with_mock_db, mock_supabase, sample_customers):
        mock_supabase.set_table_data("customers", sample_customers)

        response = test_client_with_mock_db.get("/api/search", params={"q": "acme clean"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "acme clean"
        assert data["results"][0]["id"] == "c1"
        assert data["results"][0]["category"] == "customer"
        assert data["results"][0]["route"] == "/customers/c1"
        assert data["groups"][0]["label"] == "Customers"
        assert data["groups"][0]["total"] == 1
        assert data["unavailable_categories"] == []

    def test_short_query_is_empty(self, test_client_with_mock_db, mock_supabase):
        response = test_client_with_mock_db.get("/api/search", params={"q": "a"})

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert mock_supabase.calls == []

    def test_category_filter(self, test_client_with_mock_db, mock_supabase, sample_customers):
        mock_supabase.set_table_data("customers", sample_customers)

        response = test_client_with_mock_db.get(
            "/api/search",
            params=[("q", "acme"), ("categories", "supplier")]
        )

        assert response.status_code == 200
        assert response.json()["results"] == []
        assert mock_supabase.calls_for("customers") == []

    def test_unknown_category_is_rejected(self, test_client_with_mock_db):
        response = test_client_with_mock_db.get(
            "/api/search",
            params={"q": "acme", "categories": "spaceship"}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "UNKNOWN_CATEGORY"

    def test_failed_catalog_is_reported(self, test_client_with_mock_db, mock_supabase, sample_customers):
        mock_supabase.set_table_data("customers", sample_customers)
        mock_supabase.set_table_error("quotes", RuntimeError("connection reset"))

        response = test_client_with_mock_db.get("/api/search", params={"q": "acme clean"})

        assert response.status_code == 200
        data = response.json()
        assert data["unavailable_categories"] == ["quote"]
        assert data["results"][0]["id"] == "c1"


class TestSuggestionsRoute:
    """GET /api/search/suggestions"""

    def test_returns_suggestions(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_data("customers", [
            CustomerFactory.create(id="c1", name="Acme Pty Ltd"),
        ])
        mock_supabase.set_table_data("customer_locations", [
            LocationFactory.create(id="l1", customer_id="c1", name="Melbourne CBD Office"),
        ])

        response = test_client_with_mock_db.get(
            "/api/search/suggestions",
            params={"text": "acme melb office"}
        )

        assert response.status_code == 200
        suggestion = response.json()["suggestions"][0]
        assert suggestion["customer_id"] == "c1"
        assert suggestion["location_id"] == "l1"
        assert suggestion["confidence_percent"] >= 50
        assert suggestion["confidence_level"] in ("high", "medium")

    def test_database_failure_returns_500(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_error("customers", RuntimeError("timeout"))

        response = test_client_with_mock_db.get("/api/search/suggestions", params={"text": "acme"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DATABASE_ERROR"


class TestImportRoutes:
    """POST /api/import/column-mappings[/validate]"""

    def test_classify_headers(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings",
            json={"headers": ["Item", "Qty", "Rate", "Random Column"]}
        )

        assert response.status_code == 200
        data = response.json()
        assert [m["target_field"] for m in data["mappings"]] == [
            "description", "quantity", "unit_price", "ignore"
        ]
        assert data["mappings"][3]["source_header"] == "Random Column"
        assert data["missing_required"] == []

    def test_classify_reports_missing_required(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings",
            json={"headers": ["Item", "Qty"]}
        )

        assert response.json()["missing_required"] == ["unit_price"]

    def test_empty_header_list_rejected(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post("/api/import/column-mappings", json={"headers": []})

        assert response.status_code == 422

    def test_validate_accepts_complete_mapping(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings/validate",
            json={"mappings": [
                {"source_header": "Item", "target_field": "description"},
                {"source_header": "Qty", "target_field": "quantity"},
                {"source_header": "Sell", "target_field": "unit_price", "method": "user_override"},
            ]}
        )

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "columns": {"description": "Item", "quantity": "Qty", "unit_price": "Sell"},
        }

    def test_validate_rejects_missing_required(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings/validate",
            json={"mappings": [
                {"source_header": "Item", "target_field": "description"},
                {"source_header": "Rate", "target_field": "cost_price"},
            ]}
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "MISSING_REQUIRED_FIELDS"
        assert error["details"]["fields"] == ["quantity", "unit_price"]


class TestHealth:
    """GET /health"""

    def test_health_reports_database(self, test_client_with_mock_db):
        response = test_client_with_mock_db.get("/health")

        assert response.status_code == 200
        assert response.json()["database"]["status"] == "healthy"


class TestUploadRoutes:
    """Spreadsheet uploads"""

    CSV = (
        "Item,Qty,Rate,Site\n"
        "Window clean,2,45,Melbourne Office\n"
        "Carpet steam,1,120,\n"
    )

    def test_upload_classifies_headers(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings/upload",
            files={"file": ("items.csv", self.CSV.encode("utf-8"), "text/csv")}
        )

        assert response.status_code == 200
        data = response.json()
        assert [m["target_field"] for m in data["mappings"]] == [
            "description", "quantity", "unit_price", "location_name"
        ]
        assert data["row_count"] == 2

    def test_unreadable_upload_rejected(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/column-mappings/upload",
            files={"file": ("items.xlsx", b"garbage", "application/octet-stream")}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "SPREADSHEET_PARSE_ERROR"

    def test_preview_parses_rows(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/line-items/preview",
            files={"file": ("items.csv", self.CSV.encode("utf-8"), "text/csv")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["items"][0]["description"] == "Window clean"
        assert data["items"][0]["line_total"] == 90.0
        assert data["items"][0]["location_name"] == "Melbourne Office"
        assert data["items"][1]["frequency"] == "monthly"

    def test_preview_applies_overrides(self, test_client_with_mock_db):
        overrides = '[{"source_header": "Rate", "target_field": "cost_price"}]'

        response = test_client_with_mock_db.post(
            "/api/import/line-items/preview",
            files={"file": ("items.csv", self.CSV.encode("utf-8"), "text/csv")},
            data={"mappings": overrides}
        )

        assert response.status_code == 422
        assert response.json()["error"]["details"]["fields"] == ["unit_price"]

    def test_preview_rejects_malformed_overrides(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/import/line-items/preview",
            files={"file": ("items.csv", self.CSV.encode("utf-8"), "text/csv")},
            data={"mappings": "not json"}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_MAPPINGS"
