from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str
    message: str
    request_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str
    db: str
    runs: Optional[int] = None


class ImportResponse(BaseModel):
    imported: int
    skipped: int
    total: int
    format: Optional[str] = None


class SplitEntry(BaseModel):
    duration: float
    duration_unit: str = "min"
    date: Optional[str] = None


class TrackPointEntry(BaseModel):
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[str] = None


class RunSummary(BaseModel):
    id: int
    date: str
    distance_km: float
    duration_min: float
    pace_min_per_km: float
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    elevation_gain_m: Optional[float] = None
    calories: Optional[int] = None
    source: str
    workout_name: Optional[str] = None
    created_at: Optional[str] = None


class RunDetail(RunSummary):
    notes: Optional[str] = None
    step_count: Optional[int] = None
    avg_running_power: Optional[float] = None
    avg_ground_contact_time: Optional[float] = None
    avg_running_speed: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stride_length: Optional[float] = None
    indoor_workout: Optional[int] = None
    source_name: Optional[str] = None
    splits: List[SplitEntry] = Field(default_factory=list)
    raw_data: Optional[Dict[str, Any]] = None
    gpx_data: List[TrackPointEntry] = Field(default_factory=list)


class RunsResponse(BaseModel):
    runs: List[RunSummary] = Field(default_factory=list)
    limit: int
    offset: int
    total: int


class DeleteResponse(BaseModel):
    status: str
    id: int
