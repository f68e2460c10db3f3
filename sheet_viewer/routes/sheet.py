"""
Sheet endpoints.

Loads a pasted Google Sheets link into the session, serves the filtered
table for the dashboard and handles resetting the view.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from sheet_viewer.config import LINK_STORE_KEY, LINK_STORE_PATH
from sheet_viewer.errors import (
    EmptyTableError,
    InvalidLinkError,
    SheetViewerError,
    UnsupportedLinkError,
)
from sheet_viewer.schemas import (
    Feedback,
    LoadSheetRequest,
    SavedLinkResponse,
    SheetView,
)
from sheet_viewer.services import facets, links, transport
from sheet_viewer.services.session import LinkStore, SessionState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sheet"])

RESET_MESSAGE = "Paste a Google Sheets link and click View Data."
LOADED_MESSAGE = "Sheet loaded successfully."

_session = SessionState()
_link_store = LinkStore(LINK_STORE_PATH, LINK_STORE_KEY)


def get_session() -> SessionState:
    return _session


def get_link_store() -> LinkStore:
    return _link_store


def _error_response(error: SheetViewerError) -> JSONResponse:
    if isinstance(error, (InvalidLinkError, UnsupportedLinkError)):
        status_code = 400
    else:
        status_code = 502
    view = SheetView(feedback=Feedback(message=error.message, is_error=True))
    return JSONResponse(status_code=status_code, content=view.model_dump())


@router.post("/load-sheet", response_model=SheetView)
def load_sheet(
    request: LoadSheetRequest,
    session: SessionState = Depends(get_session),
    link_store: LinkStore = Depends(get_link_store),
):
    """
    Resolve a pasted link, fetch the sheet and make it the current table.

    Any failure clears the current table so stale rows are never shown.
    """
    token = session.begin_load()

    try:
        # Step 1: Resolve the link and remember it
        ref = links.resolve(request.link)
        link_store.save(ref.display_url)

        # Step 2: Fetch through the transport cascade
        table = transport.fetch_table(ref)
        if not table.columns:
            raise EmptyTableError("No columns found in the selected sheet.")

        # Step 3: Work out which columns drive the filters
        column_map = facets.resolve_facets(table.columns)
    except SheetViewerError as e:
        logger.warning("Failed to load sheet from %r: %s", request.link, e.message)
        session.fail(token)
        return _error_response(e)
    except Exception:
        logger.exception("Unexpected error loading sheet from %r", request.link)
        session.fail(token)
        raise

    session.commit(token, ref.display_url, table, column_map)
    view = session.view()
    view.feedback = Feedback(message=LOADED_MESSAGE)
    return view


@router.get("/sheet", response_model=SheetView)
def read_sheet(
    system: str | None = None,
    milestone: str | None = None,
    search: str | None = None,
    session: SessionState = Depends(get_session),
):
    """
    Return the current table with the given dropdown and search filters
    applied. Omitted filters mean "all".
    """
    session.set_filters(system, milestone, search)
    return session.view()


@router.post("/reset", response_model=SheetView)
def reset(
    session: SessionState = Depends(get_session),
    link_store: LinkStore = Depends(get_link_store),
):
    """Forget the saved link and clear the table."""
    link_store.clear()
    session.reset()
    view = session.view()
    view.feedback = Feedback(message=RESET_MESSAGE)
    return view


@router.get("/saved-link", response_model=SavedLinkResponse)
def saved_link(link_store: LinkStore = Depends(get_link_store)):
    return SavedLinkResponse(link=link_store.load())
