"""Pydantic v2 response models for the Berthwatch web API.

Field names follow the wire format the existing front end already consumes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Vessel schedule
# ---------------------------------------------------------------------------
class VesselRow(BaseModel):
    rowNum: int
    trmnSeq: int
    trmnCode: str
    trmnName: str
    trmnUrl: str
    linerCode: str
    vessel: str
    voyage: str
    motherVoyage: str
    arrivedDatetime: str
    departedDatetime: str
    closingDatetime: str
    statusType: str


class PageInfo(BaseModel):
    pageSize: int
    pageNo: int
    totalCount: int
    totalPageNoCount: int
    startPageNo: int
    endPageNo: int
    prevPageNo: int | None
    nextPageNo: int | None


class VesselPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: list[VesselRow] = Field(alias="list")
    pageInfo: PageInfo
    lastUpdatedDate: str


class VesselListResponse(BaseModel):
    resultCode: int = 0
    resultMessage: str = "SUCCESS"
    resultObject: VesselPage


# ---------------------------------------------------------------------------
# Terminals
# ---------------------------------------------------------------------------
class TerminalCode(BaseModel):
    code: str
    name: str
    port: str
    count: int


class CrawlStatusResponse(BaseModel):
    status: str
    lastUpdated: str | None


class DebugResponse(BaseModel):
    totalStored: int
    byTerminal: dict[str, int]


# ---------------------------------------------------------------------------
# Schedule changes
# ---------------------------------------------------------------------------
class ScheduleChange(BaseModel):
    trmnCode: str
    vessel: str
    voyage: str
    fieldName: str
    oldValue: str
    newValue: str
    delayMinutes: int
    detectedAt: str


class ScheduleChangeListResponse(BaseModel):
    changes: list[ScheduleChange]
    total: int
