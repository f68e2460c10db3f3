"""
Sheet Viewer Backend

Turns a pasted Google Sheets link into a searchable, filterable table:
1. Resolves the link into a sheet ID and tab
2. Fetches the tab through a cascade of public Google endpoints
3. Normalizes whatever came back into columns and rows
4. Guesses the system/milestone/developer/manager columns for filtering
5. Serves the filtered table to the static dashboard page
"""

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from sheet_viewer.config import LOG_LEVEL, get_cors_origins
from sheet_viewer.routes import sheet

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Sheet Viewer",
    description="Searchable, filterable view of public Google Sheets",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sheet.router)

# Serve static frontend assets
_static_dir = Path(__file__).resolve().parent / "static"
app.mount("/static", StaticFiles(directory=str(_static_dir)), name="static")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def index():
    return FileResponse(str(_static_dir / "index.html"))
