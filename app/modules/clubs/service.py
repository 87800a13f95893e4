import re
from supabase import Client
from app.core.time_utils import parse_datetime, utcnow, utcnow_iso
from app.database.supabase_client import first_row
from app.modules.clubs.schemas import (
    ClubResponse, ClubUpdate, ClassResponse, ClassCreate, ReviewResponse, FavoriteResponse
)
from typing import Dict, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

WEEKDAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_HOURS_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)-([01]\d|2[0-3]|24):([0-5]\d)$")


def validate_open_hours(hours: Dict[str, str]) -> List[str]:
    """Return a list of problems; empty when every entry is 'HH:MM-HH:MM' or 'closed'."""
    errors = []
    for day, value in hours.items():
        if day not in WEEKDAY_KEYS:
            errors.append(f"Unknown weekday: {day}")
            continue
        if value == "closed":
            continue
        match = _HOURS_RE.match(value or "")
        if not match:
            errors.append(f"{day}: expected HH:MM-HH:MM or 'closed', got {value!r}")
            continue
        opens = int(match.group(1)) * 60 + int(match.group(2))
        closes = int(match.group(3)) * 60 + int(match.group(4))
        if closes <= opens:
            errors.append(f"{day}: closing time must be after opening time")
    return errors


class ClubService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def discover_clubs(self, city: Optional[str] = None, club_type: Optional[str] = None,
                       search: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[ClubResponse]:
        """Clubs for the discover screen, best rated first"""
        try:
            query = self.supabase.table("clubs").select("*")
            if city:
                query = query.ilike("city", city)
            if club_type:
                query = query.eq("type", club_type)
            if search:
                query = query.ilike("name", f"%{search}%")
            result = query.order("avg_rating", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            return [ClubResponse(**c) for c in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_club(self, club_id: str) -> ClubResponse:
        try:
            club = first_row(self.supabase.table("clubs")
                             .select("*")
                             .eq("id", club_id)
                             .limit(1)
                             .execute())
            if not club:
                raise HTTPException(status_code=404, detail="Club not found")
            return ClubResponse(**club)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_club(self, club_id: str, club_data: ClubUpdate) -> ClubResponse:
        self.get_club(club_id)
        try:
            update_data = club_data.model_dump(exclude_unset=True)
            if not update_data:
                return self.get_club(club_id)
            update_data["updated_at"] = utcnow_iso()
            result = self.supabase.table("clubs")\
                .update(update_data)\
                .eq("id", club_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to update club")
            return ClubResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def set_open_hours(self, club_id: str, hours: Dict[str, str]) -> ClubResponse:
        normalized = {}
        for day, value in hours.items():
            value = (value or "").strip()
            normalized[day.lower()] = "closed" if value.lower() == "closed" else value
        errors = validate_open_hours(normalized)
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))
        self.get_club(club_id)
        try:
            result = self.supabase.table("clubs")\
                .update({"open_hours": normalized, "updated_at": utcnow_iso()})\
                .eq("id", club_id)\
                .execute()
            return ClubResponse(**result.data[0])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    # Classes

    def list_classes(self, club_id: str, include_past: bool = False) -> List[ClassResponse]:
        try:
            query = self.supabase.table("classes")\
                .select("*")\
                .eq("club_id", club_id)
            if not include_past:
                query = query.gte("start_time", utcnow_iso())
            result = query.order("start_time").execute()
            return [ClassResponse(**c) for c in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_class(self, club_id: str, class_data: ClassCreate) -> ClassResponse:
        if parse_datetime(class_data.start_time) <= utcnow():
            raise HTTPException(status_code=400, detail="Class must start in the future")
        self.get_club(club_id)
        try:
            data = class_data.model_dump(mode="json")
            data.update({"club_id": club_id, "booked_spots": 0, "created_at": utcnow_iso()})
            result = self.supabase.table("classes").insert(data).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create class")
            logger.info(f"Created class {result.data[0]['id']} for club {club_id}")
            return ClassResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    # Reviews

    def _recompute_rating(self, club_id: str) -> float:
        result = self.supabase.table("reviews")\
            .select("rating")\
            .eq("club_id", club_id)\
            .execute()
        ratings = [r["rating"] for r in (result.data or []) if r.get("rating") is not None]
        avg = round(sum(ratings) / len(ratings), 2) if ratings else 0
        self.supabase.table("clubs")\
            .update({"avg_rating": avg})\
            .eq("id", club_id)\
            .execute()
        return avg

    def add_review(self, user_id: str, club_id: str, rating: int, comment: Optional[str]) -> ReviewResponse:
        """One review per member and club; posting again replaces the earlier one"""
        self.get_club(club_id)
        try:
            existing = first_row(self.supabase.table("reviews")
                                 .select("id")
                                 .eq("user_id", user_id)
                                 .eq("club_id", club_id)
                                 .limit(1)
                                 .execute())
            if existing:
                result = self.supabase.table("reviews")\
                    .update({"rating": rating, "comment": comment, "updated_at": utcnow_iso()})\
                    .eq("id", existing["id"])\
                    .execute()
            else:
                result = self.supabase.table("reviews").insert({
                    "user_id": user_id,
                    "club_id": club_id,
                    "rating": rating,
                    "comment": comment,
                    "created_at": utcnow_iso(),
                }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save review")
            self._recompute_rating(club_id)
            return ReviewResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_review(self, user_id: str, club_id: str) -> bool:
        try:
            result = self.supabase.table("reviews")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("club_id", club_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Review not found")
            self._recompute_rating(club_id)
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_reviews(self, club_id: str, limit: int = 50, offset: int = 0) -> List[ReviewResponse]:
        try:
            result = self.supabase.table("reviews")\
                .select("*, profiles:user_id (display_name, avatar_url)")\
                .eq("club_id", club_id)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            return [ReviewResponse(**r) for r in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    # Favorites

    def add_favorite(self, user_id: str, club_id: str) -> bool:
        self.get_club(club_id)
        try:
            self.supabase.table("favorites").upsert({
                "user_id": user_id,
                "club_id": club_id,
            }, on_conflict="user_id,club_id").execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def remove_favorite(self, user_id: str, club_id: str) -> bool:
        try:
            self.supabase.table("favorites")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("club_id", club_id)\
                .execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_favorites(self, user_id: str) -> List[FavoriteResponse]:
        try:
            result = self.supabase.table("favorites")\
                .select("club_id, created_at, clubs:club_id (id, name, image_url, city, avg_rating, type)")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [FavoriteResponse(**f) for f in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
