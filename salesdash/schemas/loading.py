"""
Progressive load status schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from salesdash.models.enums import LoadPhase, Resource


class ProgressResponse(BaseModel):
    current: int = 0
    total: int = 0
    percentage: float = 0.0
    is_estimate: bool = True


class BatchResponse(BaseModel):
    index: int
    size: int
    total: int
    seconds_since_start: float


class LoadStatusResponse(BaseModel):
    """Snapshot of one resource's load"""
    resource: Resource
    phase: LoadPhase
    is_loading: bool = False
    is_loading_more: bool = False
    is_complete: bool = False
    is_errored: bool = False
    count: int = 0
    progress: ProgressResponse
    error: Optional[str] = None
    capped: bool = False
    batch_count: int = 0
    batches: List[BatchResponse] = []
    last_update: Optional[datetime] = None
    eta_seconds: float = 0.0
    average_batch_seconds: float = 0.0
    generation: int = 0


class LoadsOverview(BaseModel):
    """Both loads plus the combined bar the dashboard header shows"""
    loads: List[LoadStatusResponse] = []
    combined: ProgressResponse
    all_complete: bool = False
