from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime


class ClubResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    credits: int = 1
    avg_rating: Optional[float] = None
    open_hours: Optional[Dict[str, str]] = None
    amenities: Optional[List[str]] = None
    photos: Optional[List[str]] = None
    image_url: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClubUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    credits: Optional[int] = Field(None, ge=1)
    amenities: Optional[List[str]] = None
    photos: Optional[List[str]] = None
    image_url: Optional[str] = None


class OpenHoursRequest(BaseModel):
    open_hours: Dict[str, str]


class ClassResponse(BaseModel):
    id: str
    club_id: str
    name: str
    description: Optional[str] = None
    instructor_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_participants: int
    booked_spots: int = 0
    intensity: Optional[str] = None

    class Config:
        from_attributes = True


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    instructor_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    max_participants: int = Field(..., ge=1)
    intensity: Optional[str] = None

    @model_validator(mode="after")
    def validate_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    id: str
    club_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    profiles: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class FavoriteResponse(BaseModel):
    club_id: str
    created_at: Optional[datetime] = None
    clubs: Optional[Dict[str, Any]] = None
