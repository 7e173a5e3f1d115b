"""Generic HTML table adapter.

Most terminal sites render their berth schedule as a plain HTML table, often
behind a form POST and in a legacy encoding. Rows are located with a CSS
selector and cells are mapped to fields by position::

    {
        "code": "BNMT", "type": "html_table",
        "url": "http://www.bnmt.co.kr",
        "endpoint": "http://www.bnmt.co.kr/ebiz/",
        "method": "POST",
        "encoding": "euc-kr",
        "date_format": "%Y%m%d",
        "form": {"code": "0101", "STATE": "SEARCH", "txt1": "{start}", "txt2": "{end}"},
        "row_selector": "tr",
        "min_cells": 10,
        "columns": {"mother_voyage": 0, "vessel_name": 1, "carrier_code": 2,
                    "arrival": 3, "departure": 4, "cutoff": 5},
        "header_values": ["모선명"]
    }
"""

from __future__ import annotations

import logging

import httpx
from bs4 import BeautifulSoup, Tag

from berthwatch.ingestion.adapter import (
    USER_AGENT,
    FetchError,
    SourceAdapter,
    render_template,
)
from berthwatch.ingestion.normalize import CrawlWindow, VesselRecord, make_record
from berthwatch.ingestion.status import StatusSignalMap

logger = logging.getLogger(__name__)

_RECORD_FIELDS = (
    "vessel_name", "voyage", "mother_voyage", "carrier_code",
    "arrival", "departure", "cutoff",
)


def _cell_text(cells: list[Tag], index: int | None) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index].get_text(" ", strip=True)


class HTMLTableAdapter(SourceAdapter):
    """Adapter for terminals publishing their schedule as an HTML table."""

    def configure(self, config: dict) -> None:
        super().configure(config)
        self._url = config.get("endpoint") or self.terminal.url
        self._method = config.get("method", "GET").upper()
        self._date_format = config.get("date_format", "%Y-%m-%d")
        self._params = config.get("params", {})
        self._form = config.get("form")
        self._headers = config.get("headers", {})
        self._verify_tls = config.get("verify_tls", True)
        self._encoding = config.get("encoding")
        self._row_selector = config.get("row_selector", "tr")
        self._columns = {
            field: int(index)
            for field, index in config.get("columns", {}).items()
            if field in _RECORD_FIELDS
        }
        self._status_column = config.get("status_column")
        self._status_from_class = bool(config.get("status_from_class", False))
        self._header_values = {v.strip() for v in config.get("header_values", [])}
        self._signal_map = StatusSignalMap.from_config(config.get("status_map"))

        if "vessel_name" not in self._columns:
            raise ValueError(f"Source '{self.name}': columns.vessel_name is required")
        self._min_cells = int(config.get("min_cells", max(self._columns.values()) + 1))

    def _request(self, window: CrawlWindow) -> str:
        headers = {"User-Agent": USER_AGENT, **self._headers}
        try:
            with httpx.Client(
                timeout=self.timeout, verify=self._verify_tls, headers=headers
            ) as client:
                resp = client.request(
                    self._method,
                    self._url,
                    params=render_template(self._params, window, self._date_format),
                    data=render_template(self._form, window, self._date_format),
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError(self.name, f"request failed: {exc}") from exc

        if self._encoding:
            return resp.content.decode(self._encoding, errors="replace")
        return resp.text

    def _status_signal(self, row: Tag, cells: list[Tag]) -> str | None:
        if self._status_from_class:
            # Layout classes (striping, alignment) are not status markers
            classes = list(row.get("class") or [])
            for cell in cells:
                classes.extend(cell.get("class") or [])
            marked = [c for c in classes if self._signal_map.recognizes(c)]
            return " ".join(marked) or None
        if self._status_column is not None:
            return _cell_text(cells, int(self._status_column))
        return None

    def parse(self, html: str) -> list[VesselRecord]:
        """Turn the schedule page into records, skipping header and short rows."""
        soup = BeautifulSoup(html, "html.parser")
        now = self.local_now()
        records: list[VesselRecord] = []
        for row in soup.select(self._row_selector):
            cells = row.find_all("td")
            if len(cells) < self._min_cells:
                continue
            values = {field: _cell_text(cells, index) for field, index in self._columns.items()}
            vessel = values.get("vessel_name", "")
            if not vessel or vessel in self._header_values:
                continue
            records.append(
                make_record(
                    self.terminal,
                    status_signal=self._status_signal(row, cells),
                    signal_map=self._signal_map,
                    now=now,
                    **values,
                )
            )
        return records

    def fetch(self, window: CrawlWindow) -> list[VesselRecord]:
        html = self._request(window)
        records = self.parse(html)
        logger.info("Fetched %d records from %s", len(records), self.name)
        return records
