"""Ingestion: source adapters, normalization, and concurrent fetching."""

from berthwatch.ingestion.html_adapter import HTMLTableAdapter
from berthwatch.ingestion.json_adapter import JSONScheduleAdapter
from berthwatch.ingestion.registry import register_adapter

register_adapter("json", JSONScheduleAdapter)
register_adapter("html_table", HTMLTableAdapter)
