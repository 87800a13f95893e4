from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class SelectedGymResponse(BaseModel):
    id: str
    club_id: str
    gym_name: Optional[str] = None
    gym_address: Optional[str] = None
    gym_image: Optional[str] = None
    status: str
    effective_from: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DailyAccessStatusResponse(BaseModel):
    has_daily_access: bool
    membership_id: Optional[str] = None
    plan_title: Optional[str] = None
    max_slots: int = 0


class SelectedGymsResponse(BaseModel):
    current: List[SelectedGymResponse] = []
    pending: List[SelectedGymResponse] = []
    removing: List[SelectedGymResponse] = []
    max_slots: int = 0


class SelectGymRequest(BaseModel):
    club_id: str


class DailyAccessActionResponse(BaseModel):
    message: str
    status: str
    effective_from: Optional[datetime] = None


class DailyAccessSummaryResponse(BaseModel):
    user_id: str
    is_daily_access: bool = True
    gym_slots: int
    max_gym_slots: int
    next_cycle_date: Optional[datetime] = None
    current_gyms: List[SelectedGymResponse] = []
    pending_gyms: List[SelectedGymResponse] = []


class RolloverResult(BaseModel):
    activated: int = 0
    removed: int = 0
