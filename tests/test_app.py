"""HTTP API tests against the Flask test client."""

import json

from core.store import PICKED_STOCKS


def _tickers(payload):
    return [row["tickerName"] for row in payload["view"]["rows"]]


class TestHealthAndFiles:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_files_tree(self, client):
        payload = client.get("/api/files").get_json()

        assert [node["name"] for node in payload["directories"]] == ["2024", "master", "sector"]
        assert payload["directories"][0]["subdirectories"][0]["path"] == "2024/q1"

    def test_files_scan_failure(self, client, monkeypatch):
        import ui.app

        def broken(root):
            raise ui.app.DirectoryScanError("permission denied")

        monkeypatch.setattr(ui.app, "scan_directories", broken)

        response = client.get("/api/files")

        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to read directories"

    def test_refresh_picks_up_new_files(self, client, data_dir):
        (data_dir / "master" / "late.json").write_text(
            '[{"tickerName": "IBM", "signalType": "Buy", "stockPrice": "163.50", "date": "2024-01-10"}]',
            encoding="utf-8",
        )

        payload = client.post("/api/refresh").get_json()

        assert payload["viewing"] == "Viewing: All Data (3 files)"
        assert "IBM" in _tickers(payload)
        assert "directories" in payload


class TestTable:
    def test_initial_table_is_all_data(self, client):
        payload = client.get("/api/table").get_json()

        assert payload["viewing"] == "Viewing: All Data (2 files)"
        assert payload["selection"] is None
        assert _tickers(payload) == ["AAPL", "MSFT", "NVDA"]
        assert payload["view"]["signalTypes"] == ["All", "Buy", "Sell", "Strong Buy"]
        assert payload["view"]["priceBounds"] == [190.0, 495.0]
        assert payload["view"]["rows"][0]["isPicked"] is False

    def test_payload_keeps_key_order(self, client):
        body = json.loads(client.get("/api/table").get_data(as_text=True))

        assert list(body) == ["viewing", "selection", "loading", "state", "view"]

    def test_select_file_and_back(self, client):
        selected = client.post("/api/selection", json={"directory": "2024/q1", "file": "january.json"}).get_json()

        assert selected["viewing"] == "Viewing: 2024/q1/january.json"
        assert selected["selection"] == {"directory": "2024/q1", "file": "january.json"}
        assert {row["sourceFile"] for row in selected["view"]["rows"]} == {"2024/q1/january.json"}

        cleared = client.delete("/api/selection").get_json()
        assert cleared["selection"] is None
        assert _tickers(cleared) == ["AAPL", "MSFT", "NVDA"]

    def test_selection_requires_fields(self, client):
        response = client.post("/api/selection", json={"directory": "master"})

        assert response.status_code == 400
        assert "file" in response.get_json()["error"]

    def test_filters(self, client):
        payload = client.post("/api/table/filters", json={"priceRange": [300, 500]}).get_json()
        assert _tickers(payload) == ["MSFT", "NVDA"]

        payload = client.post("/api/table/filters", json={"search": "nv"}).get_json()
        assert _tickers(payload) == ["NVDA"]
        assert payload["state"]["search"] == "nv"

        payload = client.post(
            "/api/table/filters",
            json={"search": "", "signalType": "All", "dates": ["2024-01-02"], "priceRange": [190, 495]},
        ).get_json()
        assert _tickers(payload) == ["AAPL"]

    def test_bad_price_range(self, client):
        response = client.post("/api/table/filters", json={"priceRange": [10, "x"]})

        assert response.status_code == 400

    def test_sort_cycle(self, client):
        ascending = client.post("/api/table/sort", json={"field": "stockPrice"}).get_json()
        descending = client.post("/api/table/sort", json={"field": "stockPrice"}).get_json()
        cleared = client.post("/api/table/sort", json={"field": "stockPrice"}).get_json()

        assert _tickers(ascending) == ["AAPL", "MSFT", "NVDA"]
        assert _tickers(descending) == ["NVDA", "MSFT", "AAPL"]
        assert descending["state"]["sortDirection"] == "desc"
        assert cleared["state"]["sortField"] is None

    def test_unknown_sort_field(self, client):
        assert client.post("/api/table/sort", json={"field": "volume"}).status_code == 400

    def test_page_is_clamped(self, client):
        payload = client.post("/api/table/page", json={"page": 7}).get_json()

        assert payload["view"]["page"] == 1
        assert payload["view"]["totalPages"] == 1


class TestPicks:
    RECORD = {"tickerName": "MSFT", "signalType": "Sell", "stockPrice": "370.10", "date": "2024-01-03"}

    def test_toggle_round_trip(self, client):
        added = client.post("/api/picks/toggle", json=self.RECORD).get_json()
        assert added["isPicked"] is True
        assert added["count"] == 1
        assert added["picks"][0]["priority"] == "moderate"

        table = client.get("/api/table").get_json()
        assert [row["isPicked"] for row in table["view"]["rows"]] == [False, True, False]

        removed = client.post("/api/picks/toggle", json=self.RECORD).get_json()
        assert removed["isPicked"] is False
        assert removed["count"] == 0

    def test_toggle_requires_ticker(self, client):
        assert client.post("/api/picks/toggle", json={"signalType": "Buy"}).status_code == 400

    def test_priority_and_remove(self, client):
        pick_id = client.post("/api/picks/toggle", json=self.RECORD).get_json()["picks"][0]["id"]

        updated = client.patch(f"/api/picks/{pick_id}", json={"priority": "high"})
        assert updated.status_code == 200
        assert updated.get_json()["picks"][0]["priority"] == "high"

        assert client.patch(f"/api/picks/{pick_id}", json={"priority": "urgent"}).status_code == 400

        assert client.delete(f"/api/picks/{pick_id}").get_json()["count"] == 0

    def test_unknown_pick(self, client):
        assert client.patch("/api/picks/nope", json={"priority": "low"}).status_code == 404
        assert client.delete("/api/picks/nope").status_code == 404

    def test_store_outage_reports_503(self, client, store, monkeypatch):
        from core.store import StoreError

        def refuse(collection, record):
            raise StoreError("offline")

        monkeypatch.setattr(store, "insert", refuse)

        response = client.post("/api/picks/toggle", json=self.RECORD)

        assert response.status_code == 503
        assert store.select(PICKED_STOCKS) == []


class TestChat:
    def test_send_and_list(self, client):
        response = client.post("/api/chat", json={"userName": "ana", "message": "morning"})

        assert response.status_code == 201
        history = client.get("/api/chat").get_json()
        assert [m["message"] for m in history["messages"]] == ["morning"]
        assert history["userName"] == "ana"

    def test_blank_message_rejected(self, client):
        assert client.post("/api/chat", json={"userName": "ana", "message": "  "}).status_code == 400
        assert client.post("/api/chat", json={"message": "hi"}).status_code == 400

    def test_clear_requires_confirmation(self, client):
        client.post("/api/chat", json={"userName": "ana", "message": "morning"})

        assert client.delete("/api/chat").status_code == 400
        assert client.delete("/api/chat", json={"confirm": False}).status_code == 400
        assert len(client.get("/api/chat").get_json()["messages"]) == 1

        cleared = client.delete("/api/chat", json={"confirm": True})
        assert cleared.status_code == 200
        assert cleared.get_json()["messages"] == []


class TestSuggestions:
    def test_thread_lifecycle(self, client):
        created = client.post("/api/suggestions", json={"userName": "ana", "content": "dark mode"})
        assert created.status_code == 201
        suggestion_id = created.get_json()["suggestions"][0]["id"]

        replied = client.post(f"/api/suggestions/{suggestion_id}/replies", json={"userName": "bo", "content": "+1"})
        assert replied.status_code == 201
        assert [r["content"] for r in replied.get_json()["suggestions"][0]["replies"]] == ["+1"]

        expanded = client.post(f"/api/suggestions/{suggestion_id}/expand").get_json()
        assert expanded == {"id": suggestion_id, "expanded": True}
        assert client.get("/api/suggestions").get_json()["suggestions"][0]["expanded"] is True

        assert client.delete(f"/api/suggestions/{suggestion_id}").status_code == 400
        deleted = client.delete(f"/api/suggestions/{suggestion_id}", json={"confirm": True})
        assert deleted.get_json()["count"] == 0

    def test_unknown_suggestion(self, client):
        assert client.post("/api/suggestions/nope/replies", json={"userName": "a", "content": "b"}).status_code == 404
        assert client.post("/api/suggestions/nope/expand").status_code == 404
        assert client.delete("/api/suggestions/nope", json={"confirm": True}).status_code == 404

    def test_blank_content_rejected(self, client):
        assert client.post("/api/suggestions", json={"userName": "ana", "content": ""}).status_code == 400


class TestSession:
    def test_set_and_get_name(self, client):
        assert client.get("/api/session").get_json() == {"userName": ""}

        assert client.put("/api/session", json={"userName": "  ana "}).get_json() == {"userName": "ana"}
        assert client.get("/api/session").get_json() == {"userName": "ana"}

    def test_blank_name_rejected(self, client):
        assert client.put("/api/session", json={"userName": "  "}).status_code == 400

    def test_name_defaults_for_chat(self, client):
        client.put("/api/session", json={"userName": "ana"})

        client.post("/api/chat", json={"message": "hi"})

        assert client.get("/api/chat").get_json()["messages"][0]["user_name"] == "ana"
