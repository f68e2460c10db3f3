"""
Pytest configuration and shared fixtures for the sheet viewer tests.

Provides:
- Custom markers
- Sheet reference and payload factories
- Fake HTTP responses for patching requests.get
- A TestClient wired to a fresh session and a temporary link store
"""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import NonCallableMagicMock

import pytest

from sheet_viewer.schemas import SheetReference

SHEET_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456789_-"


# ============== Custom Pytest Markers ==============

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual modules")
    config.addinivalue_line("markers", "integration: HTTP API tests")


# ============== Factories ==============

def make_response(
    status_code: int = 200,
    text: str = "",
    json_data: Any = None,
) -> NonCallableMagicMock:
    """Build a fake requests.Response."""
    response = NonCallableMagicMock()
    response.status_code = status_code
    response.text = text
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON body")
    return response


def make_typed_payload(
    cols: List[Dict[str, Any]],
    rows: List[List[Optional[Dict[str, Any]]]],
) -> Dict[str, Any]:
    """Build a visualization query payload from columns and raw cells."""
    return {
        "version": "0.6",
        "status": "ok",
        "table": {
            "cols": cols,
            "rows": [{"c": cells} for cells in rows],
        },
    }


def wrap_query_response(payload: Dict[str, Any]) -> str:
    """Wrap a payload the way the visualization endpoint does."""
    return (
        "/*O_o*/\ngoogle.visualization.Query.setResponse("
        + json.dumps(payload)
        + ");"
    )


@pytest.fixture
def sheet_ref():
    return SheetReference(
        sheet_id=SHEET_ID,
        gid="0",
        display_url=f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0",
    )


@pytest.fixture
def tracker_payload():
    """A small project tracker as returned by the visualization endpoint."""
    return make_typed_payload(
        cols=[
            {"id": "A", "label": "System (Project Name)", "type": "string"},
            {"id": "B", "label": "Next Milestone", "type": "string"},
            {"id": "C", "label": "Assigned Developer", "type": "string"},
            {"id": "D", "label": "Assigned Project Manager", "type": "string"},
            {"id": "E", "label": "Due", "type": "date"},
        ],
        rows=[
            [
                {"v": "Billing"},
                {"v": "Beta"},
                {"v": "Ana"},
                {"v": "Kim"},
                {"v": "Date(2024,0,15)"},
            ],
            [
                {"v": "Billing"},
                {"v": "GA"},
                {"v": "Raj"},
                {"v": "Kim"},
                {"v": "Date(2024,2,1)", "f": "3/1/2024"},
            ],
            [
                {"v": "Search"},
                {"v": "Beta"},
                {"v": "Lee"},
                None,
                None,
            ],
        ],
    )


@pytest.fixture
def link_store(tmp_path):
    from sheet_viewer.config import LINK_STORE_KEY
    from sheet_viewer.services.session import LinkStore

    return LinkStore(tmp_path / "link.json", LINK_STORE_KEY)


@pytest.fixture
def api_client(link_store):
    """TestClient with an isolated session and link store."""
    from fastapi.testclient import TestClient

    from sheet_viewer.main import app
    from sheet_viewer.routes.sheet import get_link_store, get_session
    from sheet_viewer.services.session import SessionState

    session = SessionState()
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_link_store] = lambda: link_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
