"""Read-only query functions for the web API."""

from __future__ import annotations

import math
from datetime import datetime, timezone

from berthwatch.web.deps import get_readonly_connection

PAGE_GROUP_SIZE = 10

_SEARCH_COLUMNS = ("source_id", "source_name", "vessel_name", "voyage", "carrier_code")


def parse_source_codes(source_codes: str | None) -> list[str]:
    """Split a comma-separated code list into upper-cased codes, dropping blanks."""
    if not source_codes:
        return []
    return [c.strip().upper() for c in source_codes.split(",") if c.strip()]


# ---------------------------------------------------------------------------
# paginate
# ---------------------------------------------------------------------------
def paginate(total_count: int, page_size: int, page_no: int) -> dict:
    """Clamp the requested page and compute the page-number group around it.

    There is always at least one page, even for an empty result. Page
    numbers are grouped in tens for the UI's page links.
    """
    total_pages = max(1, math.ceil(total_count / page_size))
    page = min(max(1, page_no), total_pages)
    group = math.ceil(page / PAGE_GROUP_SIZE)
    return {
        "pageSize": page_size,
        "pageNo": page,
        "totalCount": total_count,
        "totalPageNoCount": total_pages,
        "startPageNo": (group - 1) * PAGE_GROUP_SIZE + 1,
        "endPageNo": min(group * PAGE_GROUP_SIZE, total_pages),
        "prevPageNo": page - 1 if page > 1 else None,
        "nextPageNo": page + 1 if page < total_pages else None,
    }


# ---------------------------------------------------------------------------
# get_crawl_status
# ---------------------------------------------------------------------------
def get_crawl_status(database_path: str) -> dict:
    """Return the global dataset status row."""
    with get_readonly_connection(database_path) as conn:
        row = conn.execute(
            "SELECT last_updated, total_records FROM crawl_status WHERE id = 1"
        ).fetchone()
    if row is None:
        return {"last_updated": None, "total_records": 0}
    return {"last_updated": row["last_updated"], "total_records": row["total_records"]}


# ---------------------------------------------------------------------------
# query_vessels
# ---------------------------------------------------------------------------
def query_vessels(
    database_path: str,
    *,
    page_size: int = 20,
    page_no: int = 1,
    source_codes: str | None = None,
    search_text: str | None = None,
) -> dict:
    """Filter and paginate the current schedule snapshot.

    ``source_codes`` keeps only the listed terminals; ``search_text`` keeps
    records whose terminal code, terminal name, vessel, voyage or carrier
    contains it, ignoring case. Rows are numbered by their position in the
    filtered result.
    """
    conditions: list[str] = []
    params: list[object] = []

    codes = parse_source_codes(source_codes)
    if codes:
        placeholders = ", ".join("?" for _ in codes)
        conditions.append(f"upper(source_id) IN ({placeholders})")
        params.extend(codes)

    needle = (search_text or "").strip().casefold()
    if needle:
        conditions.append(
            "(" + " OR ".join(f"instr(casefold({col}), ?) > 0" for col in _SEARCH_COLUMNS) + ")"
        )
        params.extend([needle] * len(_SEARCH_COLUMNS))

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    with get_readonly_connection(database_path) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM vessel_records {where_clause}", params  # noqa: S608
        ).fetchone()[0]
        page_info = paginate(total, page_size, page_no)
        offset = (page_info["pageNo"] - 1) * page_size

        rows = conn.execute(
            "SELECT id, source_id, source_name, source_url, carrier_code, vessel_name, "
            "voyage, mother_voyage, arrival, departure, cutoff, status "
            f"FROM vessel_records {where_clause} "  # noqa: S608
            "ORDER BY id LIMIT ? OFFSET ?",
            [*params, page_size, offset],
        ).fetchall()

        status_row = conn.execute(
            "SELECT last_updated FROM crawl_status WHERE id = 1"
        ).fetchone()

    vessels = []
    for i, r in enumerate(rows):
        vessels.append({
            "rowNum": offset + i + 1,
            "trmnSeq": r["id"],
            "trmnCode": r["source_id"],
            "trmnName": r["source_name"],
            "trmnUrl": r["source_url"],
            "linerCode": r["carrier_code"],
            "vessel": r["vessel_name"],
            "voyage": r["voyage"],
            "motherVoyage": r["mother_voyage"],
            "arrivedDatetime": r["arrival"],
            "departedDatetime": r["departure"],
            "closingDatetime": r["cutoff"],
            "statusType": r["status"],
        })

    last_updated = status_row["last_updated"] if status_row else None
    return {
        "list": vessels,
        "pageInfo": page_info,
        "lastUpdatedDate": last_updated or datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# list_terminal_codes
# ---------------------------------------------------------------------------
def list_terminal_codes(database_path: str) -> list[dict]:
    """Return each terminal that has records, ordered by port then name."""
    with get_readonly_connection(database_path) as conn:
        rows = conn.execute(
            "SELECT v.source_id AS code, "
            "COALESCE(MIN(v.source_name), t.name) AS name, "
            "COALESCE(t.port, '') AS port, "
            "COALESCE(t.port_rank, 999) AS port_rank, "
            "COUNT(*) AS count "
            "FROM vessel_records v LEFT JOIN terminals t ON t.code = v.source_id "
            "GROUP BY v.source_id "
            "ORDER BY port_rank, name"
        ).fetchall()

    return [
        {"code": r["code"], "name": r["name"], "port": r["port"], "count": r["count"]}
        for r in rows
    ]


# ---------------------------------------------------------------------------
# count_by_source
# ---------------------------------------------------------------------------
def count_by_source(database_path: str) -> dict[str, int]:
    """Return the number of stored records per terminal."""
    with get_readonly_connection(database_path) as conn:
        rows = conn.execute(
            "SELECT source_id, COUNT(*) AS cnt FROM vessel_records "
            "GROUP BY source_id ORDER BY source_id"
        ).fetchall()
    return {r["source_id"]: r["cnt"] for r in rows}


# ---------------------------------------------------------------------------
# list_changes
# ---------------------------------------------------------------------------
def list_changes(
    database_path: str,
    *,
    source_codes: str | None = None,
    limit: int = 100,
) -> tuple[list[dict], int]:
    """Return the most recent schedule change events, newest first, and the total."""
    where_clause = ""
    params: list[object] = []
    codes = parse_source_codes(source_codes)
    if codes:
        placeholders = ", ".join("?" for _ in codes)
        where_clause = f"WHERE upper(source_id) IN ({placeholders})"
        params.extend(codes)

    with get_readonly_connection(database_path) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM schedule_changes {where_clause}", params  # noqa: S608
        ).fetchone()[0]
        rows = conn.execute(
            "SELECT source_id, vessel_name, voyage, field_name, old_value, new_value, "
            f"delay_minutes, detected_at FROM schedule_changes {where_clause} "  # noqa: S608
            "ORDER BY id DESC LIMIT ?",
            [*params, limit],
        ).fetchall()

    changes = [
        {
            "trmnCode": r["source_id"],
            "vessel": r["vessel_name"],
            "voyage": r["voyage"],
            "fieldName": r["field_name"],
            "oldValue": r["old_value"],
            "newValue": r["new_value"],
            "delayMinutes": r["delay_minutes"],
            "detectedAt": r["detected_at"],
        }
        for r in rows
    ]
    return changes, total
