"""
Integration Tests for the sheet HTTP API.

The transport cascade is patched out; everything else (link resolution,
facets, session state, filtering, link persistence) runs for real.
"""

from unittest.mock import patch

import pytest

from sheet_viewer.errors import UnavailableError
from sheet_viewer.services.normalizer import from_typed_payload
from tests.conftest import SHEET_ID

LINK = f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0"


@pytest.fixture
def loaded(api_client, tracker_payload):
    with patch(
        "sheet_viewer.services.transport.fetch_table",
        return_value=from_typed_payload(tracker_payload),
    ):
        response = api_client.post("/load-sheet", json={"link": LINK})
    assert response.status_code == 200
    return response.json()


@pytest.mark.integration
class TestLoadSheet:
    def test_load_returns_table_and_facets(self, loaded):
        assert loaded["source_url"] == LINK
        assert len(loaded["columns"]) == 5
        assert len(loaded["rows"]) == 3
        assert loaded["filter_columns"] == {
            "system": "system project name",
            "milestone": "next milestone",
            "developer": "assigned developer",
            "manager": "assigned project manager",
        }
        assert loaded["options"]["system"] == ["Billing", "Search"]
        assert loaded["summary"] == {"total_projects": 2, "total_milestones": 3}
        assert loaded["feedback"] == {"message": "Sheet loaded successfully.", "is_error": False}

    def test_load_saves_link(self, api_client, loaded):
        assert api_client.get("/saved-link").json() == {"link": LINK}

    def test_passes_resolved_reference_to_transport(self, api_client, tracker_payload):
        with patch(
            "sheet_viewer.services.transport.fetch_table",
            return_value=from_typed_payload(tracker_payload),
        ) as mock_fetch:
            api_client.post("/load-sheet", json={"link": LINK})

        ref = mock_fetch.call_args.args[0]
        assert ref.sheet_id == SHEET_ID
        assert ref.gid == "0"

    def test_empty_link(self, api_client, loaded):
        response = api_client.post("/load-sheet", json={"link": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["feedback"] == {
            "message": "Please paste a Google Sheets link.",
            "is_error": True,
        }
        assert body["columns"] == []
        # The previous table is gone as well
        assert api_client.get("/sheet").json()["rows"] == []

    def test_unsupported_link(self, api_client):
        response = api_client.post("/load-sheet", json={"link": "https://example.com/not-a-sheet"})

        assert response.status_code == 400
        assert response.json()["feedback"]["is_error"] is True

    def test_unavailable_sheet_clears_view(self, api_client, loaded):
        with patch(
            "sheet_viewer.services.transport.fetch_table",
            side_effect=UnavailableError("Unable to load sheet data."),
        ):
            response = api_client.post("/load-sheet", json={"link": LINK})

        assert response.status_code == 502
        assert response.json()["feedback"]["message"] == "Unable to load sheet data."
        view = api_client.get("/sheet").json()
        assert view["columns"] == []
        assert view["rows"] == []

    def test_table_without_columns(self, api_client):
        with patch(
            "sheet_viewer.services.transport.fetch_table",
            return_value=from_typed_payload({"table": {"cols": [], "rows": []}}),
        ):
            response = api_client.post("/load-sheet", json={"link": LINK})

        assert response.status_code == 502
        assert response.json()["feedback"]["message"] == "No columns found in the selected sheet."

    def test_unexpected_error_still_clears_view(self, api_client, link_store, loaded):
        with patch.object(link_store, "save", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                api_client.post("/load-sheet", json={"link": LINK})

        view = api_client.get("/sheet").json()
        assert view["columns"] == []
        assert view["rows"] == []


@pytest.mark.integration
class TestFiltering:
    def test_dropdown_filter(self, api_client, loaded):
        view = api_client.get("/sheet", params={"system": "Billing"}).json()

        assert len(view["rows"]) == 2
        assert view["filters"]["system"] == "Billing"
        assert view["summary"] == {"total_projects": 1, "total_milestones": 2}
        # Options always come from the whole table
        assert view["options"]["system"] == ["Billing", "Search"]

    def test_search(self, api_client, loaded):
        view = api_client.get("/sheet", params={"search": "KIM"}).json()

        assert len(view["rows"]) == 2

    def test_all_is_identity(self, api_client, loaded):
        view = api_client.get("/sheet", params={"system": "all", "milestone": "all"}).json()

        assert view["rows"] == loaded["rows"]

    def test_new_load_resets_filters(self, api_client, loaded, tracker_payload):
        api_client.get("/sheet", params={"system": "Search"})

        with patch(
            "sheet_viewer.services.transport.fetch_table",
            return_value=from_typed_payload(tracker_payload),
        ):
            view = api_client.post("/load-sheet", json={"link": LINK}).json()

        assert view["filters"] == {"system": "all", "milestone": "all", "search": ""}
        assert len(view["rows"]) == 3


@pytest.mark.integration
class TestReset:
    def test_reset_clears_everything(self, api_client, loaded):
        response = api_client.post("/reset")

        assert response.status_code == 200
        body = response.json()
        assert body["columns"] == []
        assert body["feedback"] == {
            "message": "Paste a Google Sheets link and click View Data.",
            "is_error": False,
        }
        assert api_client.get("/saved-link").json() == {"link": ""}


@pytest.mark.integration
class TestAppRoutes:
    def test_health(self, api_client):
        assert api_client.get("/health").json() == {"status": "ok"}

    def test_index_page(self, api_client):
        response = api_client.get("/")

        assert response.status_code == 200
        assert "sheet-source-form" in response.text
