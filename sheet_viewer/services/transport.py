"""
Transport cascade.

Google serves public sheet data from several endpoints and which of them
works depends on the sharing settings of the sheet and on the network in
between. Each strategy below reads the same tab in a different way; they are
tried in order and the first one producing a table wins.

  1. visualization query, direct request
  2. visualization query with a response handler (out-of-band callback)
  3. CSV export
  4. opensheet mirror (only when the tab name is known)
"""

import logging
import random
import re
import threading
import time
from typing import Any, Callable, Sequence
from urllib.parse import quote, urlencode

import requests

from sheet_viewer.config import (
    CALLBACK_TIMEOUT_SECONDS,
    MIRROR_BASE_URL,
    REQUEST_TIMEOUT_SECONDS,
    SHEETS_BASE_URL,
)
from sheet_viewer.errors import (
    EmptyTableError,
    MalformedResponseError,
    SheetViewerError,
    UnavailableError,
)
from sheet_viewer.schemas import SheetReference, Table
from sheet_viewer.services import normalizer

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = (
    "Unable to load sheet data. Make sure the sheet is shared to Anyone with "
    "the link (Viewer) or published to the web."
)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}

Strategy = Callable[[SheetReference], Table]


# ── URL builders ────────────────────────────────────────────────────────

def _with_tab(params: dict[str, str], ref: SheetReference) -> dict[str, str]:
    # gid wins when both selectors are present
    if ref.gid:
        params["gid"] = ref.gid
    elif ref.sheet_name:
        params["sheet"] = ref.sheet_name
    return params


def _sheet_url(ref: SheetReference, path: str, params: dict[str, str]) -> str:
    query = urlencode(_with_tab(params, ref))
    return f"{SHEETS_BASE_URL}/{quote(ref.sheet_id, safe='')}/{path}?{query}"


def build_query_url(ref: SheetReference) -> str:
    return _sheet_url(ref, "gviz/tq", {"tqx": "out:json", "headers": "1"})


def build_callback_query_url(ref: SheetReference, callback_name: str) -> str:
    params = {"tqx": f"out:json;responseHandler:{callback_name}", "headers": "1"}
    return _sheet_url(ref, "gviz/tq", params)


def build_csv_url(ref: SheetReference) -> str:
    return _sheet_url(ref, "export", {"format": "csv"})


def build_mirror_url(ref: SheetReference) -> str:
    """Mirror URL for the tab, or "" when no tab name is known."""
    if not ref.sheet_name:
        return ""
    sheet_id = quote(ref.sheet_id, safe="")
    sheet_name = quote(ref.sheet_name, safe="")
    return f"{MIRROR_BASE_URL}/{sheet_id}/{sheet_name}"


# ── Helpers ─────────────────────────────────────────────────────────────

def _get(url: str, timeout: float = REQUEST_TIMEOUT_SECONDS) -> requests.Response:
    response = requests.get(url, headers=NO_CACHE_HEADERS, timeout=timeout)
    if not 200 <= response.status_code < 300:
        raise MalformedResponseError(
            f"Google Sheets returned {response.status_code} for {url}"
        )
    return response


def _looks_like_html(text: str) -> bool:
    head = text.lstrip()[:100].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def _table_from_payload(payload: Any) -> Table:
    if not isinstance(payload, dict) or not payload.get("table"):
        raise MalformedResponseError("Response did not contain a table.")
    return normalizer.from_typed_payload(payload)


# ── Out-of-band callbacks ───────────────────────────────────────────────

class _PendingCallback:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.payload: Any = None
        self.error: Exception | None = None


class CallbackRegistry:
    """
    Named callbacks awaiting an out-of-band response.

    A name is registered before its request goes out and must be released
    once the caller stops waiting, whatever the outcome. Deliveries for names
    that are no longer registered are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingCallback] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    def register(self) -> str:
        with self._lock:
            while True:
                name = f"sheetCallback_{int(time.time() * 1000)}_{random.randint(0, 999999)}"
                if name not in self._pending:
                    self._pending[name] = _PendingCallback()
                    return name

    def deliver(self, name: str, payload: Any = None, error: Exception | None = None) -> bool:
        with self._lock:
            pending = self._pending.get(name)
        if pending is None:
            logger.debug("Dropping late response for released callback %s", name)
            return False
        pending.payload = payload
        pending.error = error
        pending.done.set()
        return True

    def wait(self, name: str, timeout: float) -> Any:
        with self._lock:
            pending = self._pending.get(name)
        if pending is None:
            raise KeyError(name)
        if not pending.done.wait(timeout):
            raise TimeoutError("Timed out while loading sheet data.")
        if pending.error is not None:
            raise pending.error
        return pending.payload

    def release(self, name: str) -> None:
        with self._lock:
            self._pending.pop(name, None)


callbacks = CallbackRegistry()


def parse_callback_response(text: str, callback_name: str) -> dict[str, Any]:
    """Unwrap "callbackName({...});" after checking the handler name."""
    match = re.search(r"([A-Za-z_$][\w$.]*)\s*\(", text)
    if not match or match.group(1).split(".")[-1] != callback_name:
        raise MalformedResponseError("Response was not addressed to this request.")
    return normalizer.parse_wrapped_json(text[match.end() - 1 :])


def _fetch_for_callback(ref: SheetReference, callback_name: str, timeout: float) -> None:
    try:
        response = _get(build_callback_query_url(ref, callback_name), timeout=timeout)
        payload = parse_callback_response(response.text, callback_name)
    except (requests.RequestException, SheetViewerError) as exc:
        callbacks.deliver(callback_name, error=exc)
        return
    callbacks.deliver(callback_name, payload=payload)


# ── Strategies ──────────────────────────────────────────────────────────

def fetch_query_json(ref: SheetReference) -> Table:
    """Strategy 1: direct visualization query request."""
    response = _get(build_query_url(ref))
    payload = normalizer.parse_wrapped_json(response.text)
    return _table_from_payload(payload)


def fetch_query_callback(
    ref: SheetReference, timeout: float = CALLBACK_TIMEOUT_SECONDS
) -> Table:
    """
    Strategy 2: visualization query answered through a named response handler.

    The callback name is registered before the request is dispatched and is
    always released again, including on timeout. Each request runs on its own
    daemon thread, so a worker stuck past the deadline never holds up the
    next load.
    """
    callback_name = callbacks.register()
    try:
        worker = threading.Thread(
            target=_fetch_for_callback,
            args=(ref, callback_name, timeout),
            name=f"sheet-callback-{callback_name}",
            daemon=True,
        )
        worker.start()
        payload = callbacks.wait(callback_name, timeout)
    finally:
        callbacks.release(callback_name)
    return _table_from_payload(payload)


def fetch_csv_export(ref: SheetReference) -> Table:
    """Strategy 3: CSV export of the tab."""
    response = _get(build_csv_url(ref))
    text = response.text
    if _looks_like_html(text):
        raise MalformedResponseError("CSV export returned an HTML page.")
    return normalizer.from_csv_text(text)


def fetch_mirror_records(ref: SheetReference) -> Table:
    """Strategy 4: JSON records from the opensheet mirror."""
    url = build_mirror_url(ref)
    if not url:
        raise MalformedResponseError("Mirror lookup needs a tab name.")

    records = _get(url).json()
    if not isinstance(records, list) or not records:
        raise EmptyTableError("Mirror returned no rows.")
    if not all(isinstance(record, dict) for record in records):
        raise MalformedResponseError("Mirror rows are not records.")
    return normalizer.from_records(records)


DEFAULT_STRATEGIES: list[Strategy] = [
    fetch_query_json,
    fetch_query_callback,
    fetch_csv_export,
    fetch_mirror_records,
]

_RECOVERABLE = (
    requests.RequestException,
    SheetViewerError,
    TimeoutError,
    ValueError,
)


def first_success(ref: SheetReference, strategies: Sequence[Strategy]) -> Table:
    """Run strategies in order and return the first table produced."""
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            table = strategy(ref)
        except _RECOVERABLE as exc:
            logger.warning(
                "Strategy %s failed for sheet %s: %s",
                name,
                ref.sheet_id,
                exc,
            )
            continue

        logger.info(
            "Loaded sheet %s via %s (%d column(s), %d row(s))",
            ref.sheet_id,
            name,
            len(table.columns),
            len(table.rows),
        )
        return table

    raise UnavailableError(UNAVAILABLE_MESSAGE)


def fetch_table(
    ref: SheetReference, strategies: Sequence[Strategy] | None = None
) -> Table:
    """Load the referenced tab, trying every transport before giving up."""
    return first_success(ref, DEFAULT_STRATEGIES if strategies is None else strategies)
