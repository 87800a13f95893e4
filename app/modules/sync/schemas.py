from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime


class SyncError(BaseModel):
    id: str
    error: str


class SubscriptionSyncResult(BaseModel):
    total: int = 0
    synced: int = 0
    skipped: int = 0
    outcomes: Dict[str, int] = {}
    errors: List[SyncError] = []


class ProductSyncResult(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[SyncError] = []


class IncompleteSubscription(BaseModel):
    id: str
    customer: Optional[str] = None
    status: str
    price_id: Optional[str] = None
    user_id: Optional[str] = None
    created: Optional[str] = None


class JobStatus(BaseModel):
    name: str
    interval_minutes: int
    running: bool
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None
    last_result: Optional[Dict] = None


class SchedulerStatus(BaseModel):
    running: bool
    jobs: List[JobStatus] = []
