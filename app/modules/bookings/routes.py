from fastapi import APIRouter, Depends, HTTPException, Request
from app.database.supabase_client import get_service_supabase
from app.modules.bookings.schemas import (
    BookingResponse, DirectVisitRequest, ClassBookingRequest, BookingQRResponse,
    CheckInRequest, CheckInResponse
)
from app.modules.bookings.service import BookingService
from app.core.dependencies import get_current_user_id, check_club_admin, get_access_cache
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_booking_service(supabase: Client = Depends(get_service_supabase)) -> BookingService:
    return BookingService(supabase)


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """List the current user's bookings, newest first"""
    return service.list_user_bookings(user_data["id"])


@router.post("/direct", response_model=BookingResponse, status_code=201)
async def book_direct_visit(
    body: DirectVisitRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    return service.book_direct_visit(user_data["id"], body.club_id, body.credits)


@router.post("/class", response_model=BookingResponse, status_code=201)
async def book_class(
    body: ClassBookingRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    return service.book_class(user_data["id"], body.class_id)


@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    body: CheckInRequest,
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Scan a member's QR code or type their booking code (club admin)"""
    booking = service.resolve_checkin(body.qr_data, body.booking_code)
    return service.complete_booking(booking, user_data, get_access_cache(request))


@router.get("/code/{code}", response_model=BookingResponse)
async def get_booking_by_code(
    code: str,
    request: Request,
    user_data: Dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_service_supabase),
    service: BookingService = Depends(get_booking_service)
):
    """Look up a booking by its code before check-in (club admin)"""
    booking = service.get_booking_by_code(code)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    check_club_admin(booking["club_id"], user_data, supabase, get_access_cache(request))
    return BookingResponse(**booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    return service.get_user_booking(user_data["id"], booking_id)


@router.get("/{booking_id}/qr", response_model=BookingQRResponse)
async def get_booking_qr(
    booking_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    """Payload for the member's check-in QR code"""
    return service.booking_qr_payload(user_data["id"], booking_id)


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service)
):
    booking = service.cancel_booking(user_data["id"], booking_id)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking
