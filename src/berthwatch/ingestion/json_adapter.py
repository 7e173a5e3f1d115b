"""Generic JSON endpoint adapter.

Many terminal systems expose their berth schedule as a JSON list behind a
GET or form POST. Everything site-specific (URL, parameter names, date format,
where the rows live, which keys hold which field, how status is signalled) is
supplied through the source configuration, e.g.::

    {
        "code": "XYZ", "type": "json",
        "url": "https://terminal.example",
        "endpoint": "https://terminal.example/api/berth",
        "method": "POST",
        "date_format": "%Y%m%d",
        "form": {"fromDate": "{start}", "toDate": "{end}"},
        "records_path": "data.list",
        "fields": {"vessel_name": "vslNm", "voyage": "voyNo", "arrival": "etb"},
        "status_field": "berthStat",
        "status_map": {"departed": ["D"], "arrived": ["B"], "match": "exact"}
    }
"""

from __future__ import annotations

import logging

import httpx

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


def _dig(data: object, path: str) -> object:
    """Follow a dotted path ("a.b.0.c") through nested dicts and lists."""
    if not path:
        return data
    for part in path.split("."):
        if isinstance(data, dict):
            data = data.get(part)
        elif isinstance(data, list) and part.isdigit() and int(part) < len(data):
            data = data[int(part)]
        else:
            return None
    return data


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


class JSONScheduleAdapter(SourceAdapter):
    """Adapter for terminals publishing their schedule as JSON."""

    def configure(self, config: dict) -> None:
        super().configure(config)
        self._url = config.get("endpoint") or self.terminal.url
        self._method = config.get("method", "GET").upper()
        self._date_format = config.get("date_format", "%Y-%m-%d")
        self._params = config.get("params", {})
        self._form = config.get("form")
        self._body = config.get("json_body")
        self._headers = config.get("headers", {})
        self._verify_tls = config.get("verify_tls", True)
        self._records_path = config.get("records_path", "")
        self._fields = config.get("fields", {})
        self._status_field = config.get("status_field")
        self._signal_map = StatusSignalMap.from_config(config.get("status_map"))

        if "vessel_name" not in self._fields:
            raise ValueError(f"Source '{self.name}': fields.vessel_name is required")

    def _request(self, window: CrawlWindow) -> object:
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json", **self._headers}
        try:
            with httpx.Client(
                timeout=self.timeout, verify=self._verify_tls, headers=headers
            ) as client:
                resp = client.request(
                    self._method,
                    self._url,
                    params=render_template(self._params, window, self._date_format),
                    data=render_template(self._form, window, self._date_format),
                    json=render_template(self._body, window, self._date_format),
                )
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPError as exc:
            raise FetchError(self.name, f"request failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(self.name, f"response is not valid JSON: {exc}") from exc

    def fetch(self, window: CrawlWindow) -> list[VesselRecord]:
        payload = self._request(window)
        rows = _dig(payload, self._records_path)
        if not isinstance(rows, list):
            raise FetchError(
                self.name, f"no record list at '{self._records_path or '<root>'}'"
            )

        now = self.local_now()
        records: list[VesselRecord] = []
        skipped = 0
        for row in rows:
            if not isinstance(row, dict):
                skipped += 1
                continue
            values = {
                field: _text(_dig(row, key))
                for field, key in self._fields.items()
                if field in _RECORD_FIELDS
            }
            if not values.get("vessel_name"):
                skipped += 1
                continue
            signal = _text(_dig(row, self._status_field)) if self._status_field else None
            records.append(
                make_record(
                    self.terminal,
                    status_signal=signal,
                    signal_map=self._signal_map,
                    now=now,
                    **values,
                )
            )

        if skipped:
            logger.debug("%s: skipped %d rows without a vessel name", self.name, skipped)
        logger.info("Fetched %d records from %s", len(records), self.name)
        return records
