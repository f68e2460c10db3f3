"""
Facet resolver.

Sheets arrive with whatever headers their owners typed, so the columns that
drive the system/milestone dropdowns and the search box are guessed from a
list of accepted header aliases per role.
"""

from typing import Sequence

from sheet_viewer.schemas import Column, FilterColumnMap
from sheet_viewer.services.normalizer import normalize_header

COLUMN_ALIASES = {
    "system": ["system", "project name", "system project name", "system (project name)"],
    "milestone": ["milestone", "next milestone"],
    "developer": ["assigned developer", "developer"],
    "manager": ["assigned project manager", "project manager"],
}


def find_column_key(columns: Sequence[Column], aliases: Sequence[str]) -> str:
    """
    Return the key of the first column matching an alias, or "".

    Exact matches on any alias win over partial ones; partial matching
    accepts containment in either direction.
    """
    normalized = [normalize_header(alias) for alias in aliases]

    for alias in normalized:
        for column in columns:
            if column.key == alias:
                return column.key

    for alias in normalized:
        for column in columns:
            if alias in column.key or column.key in alias:
                return column.key

    return ""


def resolve_facets(columns: Sequence[Column]) -> FilterColumnMap:
    keys = [column.key for column in columns]
    first = keys[0] if keys else ""
    second = keys[1] if len(keys) > 1 else first

    return FilterColumnMap(
        system=find_column_key(columns, COLUMN_ALIASES["system"]) or first,
        milestone=find_column_key(columns, COLUMN_ALIASES["milestone"]) or second,
        developer=find_column_key(columns, COLUMN_ALIASES["developer"]),
        manager=find_column_key(columns, COLUMN_ALIASES["manager"]),
    )
