"""
Row filtering for the dashboard table.

Dropdown selections match the role-mapped column exactly; the search text
matches a case-insensitive substring of any role-mapped column.
"""

from typing import Dict, List, Sequence

from sheet_viewer.schemas import ALL, FilterColumnMap, FilterOptions, FilterState, Summary

Row = Dict[str, str]


def is_unfiltered(selection: str | None) -> bool:
    return not selection or selection == ALL


def unique_values(rows: Sequence[Row], key: str) -> List[str]:
    """Sorted distinct non-blank values of one column."""
    if not key:
        return []
    values = {str(row.get(key, "")).strip() for row in rows}
    values.discard("")
    return sorted(values, key=lambda value: (value.casefold(), value))


def row_matches_search(row: Row, facets: FilterColumnMap, query: str) -> bool:
    if not query:
        return True
    return any(query in str(row.get(key, "")).lower() for key in facets.search_keys())


def apply_filters(
    rows: Sequence[Row], facets: FilterColumnMap, filters: FilterState
) -> List[Row]:
    query = filters.search.strip().lower()
    filtered = []

    for row in rows:
        if not is_unfiltered(filters.system) and row.get(facets.system, "") != filters.system:
            continue
        if (
            not is_unfiltered(filters.milestone)
            and row.get(facets.milestone, "") != filters.milestone
        ):
            continue
        if not row_matches_search(row, facets, query):
            continue
        filtered.append(row)

    return filtered


def build_options(rows: Sequence[Row], facets: FilterColumnMap) -> FilterOptions:
    return FilterOptions(
        system=unique_values(rows, facets.system),
        milestone=unique_values(rows, facets.milestone),
    )


def summarize(rows: Sequence[Row], facets: FilterColumnMap, fallback_key: str = "") -> Summary:
    """Count distinct projects (system values) and milestones (rows)."""
    project_key = facets.system or fallback_key
    return Summary(
        total_projects=len(unique_values(rows, project_key)),
        total_milestones=len(rows),
    )
