from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_service_supabase
from app.modules.clubs.schemas import (
    ClubResponse, ClubUpdate, OpenHoursRequest, ClassResponse, ClassCreate,
    ReviewRequest, ReviewResponse, FavoriteResponse
)
from app.modules.clubs.service import ClubService
from app.core.dependencies import get_current_user_id, require_club_admin
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/clubs", tags=["clubs"])


def get_club_service(supabase: Client = Depends(get_service_supabase)) -> ClubService:
    return ClubService(supabase)


@router.get("", response_model=List[ClubResponse])
async def discover_clubs(
    city: Optional[str] = None,
    type: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    return service.discover_clubs(city, type, search, limit, offset)


@router.get("/favorites", response_model=List[FavoriteResponse])
async def list_favorites(
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    return service.list_favorites(user_data["id"])


@router.get("/{club_id}", response_model=ClubResponse)
async def get_club(
    club_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    return service.get_club(club_id)


@router.put("/{club_id}", response_model=ClubResponse)
async def update_club(
    club_id: str,
    club_data: ClubUpdate,
    user_data: Dict = Depends(require_club_admin),
    service: ClubService = Depends(get_club_service)
):
    return service.update_club(club_id, club_data)


@router.put("/{club_id}/open-hours", response_model=ClubResponse)
async def set_open_hours(
    club_id: str,
    body: OpenHoursRequest,
    user_data: Dict = Depends(require_club_admin),
    service: ClubService = Depends(get_club_service)
):
    return service.set_open_hours(club_id, body.open_hours)


@router.get("/{club_id}/classes", response_model=List[ClassResponse])
async def list_classes(
    club_id: str,
    include_past: bool = False,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    return service.list_classes(club_id, include_past)


@router.post("/{club_id}/classes", response_model=ClassResponse, status_code=201)
async def create_class(
    club_id: str,
    class_data: ClassCreate,
    user_data: Dict = Depends(require_club_admin),
    service: ClubService = Depends(get_club_service)
):
    return service.create_class(club_id, class_data)


@router.get("/{club_id}/reviews", response_model=List[ReviewResponse])
async def list_reviews(
    club_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    return service.list_reviews(club_id, limit, offset)


@router.post("/{club_id}/reviews", response_model=ReviewResponse, status_code=201)
async def add_review(
    club_id: str,
    body: ReviewRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    """Add or replace the current user's review of a club"""
    return service.add_review(user_data["id"], club_id, body.rating, body.comment)


@router.delete("/{club_id}/reviews", status_code=204)
async def delete_review(
    club_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    service.delete_review(user_data["id"], club_id)


@router.post("/{club_id}/favorite", status_code=201)
async def add_favorite(
    club_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    service.add_favorite(user_data["id"], club_id)
    return {"message": "Club added to favorites"}


@router.delete("/{club_id}/favorite", status_code=200)
async def remove_favorite(
    club_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: ClubService = Depends(get_club_service)
):
    service.remove_favorite(user_data["id"], club_id)
    return {"message": "Club removed from favorites"}
