import json
import secrets
import string
from supabase import Client
from app.config.business_config import DEFAULT_CREDITS_PER_VISIT
from app.core.dependencies import check_club_admin
from app.core.time_utils import parse_datetime, utcnow, utcnow_iso
from app.database.supabase_client import first_row
from app.modules.bookings.schemas import BookingResponse, BookingQRResponse, CheckInResponse
from app.modules.daily_access.service import DailyAccessService
from app.modules.memberships.service import (
    MembershipService, credits_remaining, is_daily_access_plan, subscription_type_for
)
from app.modules.visits.service import VisitService
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

QR_TYPE = "fitpass-checkin"
BOOKING_CODE_LENGTH = 6
BOOKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
DIRECT_VISIT_VALIDITY_HOURS = 24
OPEN_STATUSES = ["pending", "confirmed"]
BOOKING_COLUMNS = (
    "*, clubs:club_id (name, image_url), "
    "classes:class_id (name, start_time, end_time, clubs:club_id (name, image_url))"
)


def generate_booking_code() -> str:
    return "".join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(BOOKING_CODE_LENGTH))


def parse_checkin_qr(data: str) -> Dict[str, Any]:
    """Decode a scanned check-in QR payload. Raises 400 for anything that is not ours."""
    try:
        payload = json.loads(data)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid QR code")
    if not isinstance(payload, dict) or payload.get("type") != QR_TYPE:
        raise HTTPException(status_code=400, detail="Not a FitPass check-in code")
    if not payload.get("bookingId"):
        raise HTTPException(status_code=400, detail="QR code is missing the booking id")
    return payload


class BookingService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.memberships = MembershipService(supabase)
        self.daily_access = DailyAccessService(supabase)
        self.visits = VisitService(supabase)

    def _get_club(self, club_id: str) -> Dict[str, Any]:
        club = first_row(self.supabase.table("clubs")
                         .select("id, name, credits")
                         .eq("id", club_id)
                         .limit(1)
                         .execute())
        if not club:
            raise HTTPException(status_code=404, detail="Club not found")
        return club

    def _check_membership_access(self, user_id: str, club: Dict[str, Any],
                                 credits: Optional[int]) -> Tuple[Dict[str, Any], int]:
        """
        Validate that the user may train at the club. Returns the membership and
        the credits the visit costs (0 for Daily Access).
        """
        membership = self.memberships.get_active_membership(user_id)
        if not membership:
            raise HTTPException(status_code=403, detail="An active membership is required to book")

        plan = self.memberships.get_plan(membership["plan_id"]) if membership.get("plan_id") else None
        if plan and (plan.get("max_daily_gyms") or 0) > 0:
            if self.daily_access.is_gym_accessible(user_id, club["id"]):
                return membership, 0
            if self.daily_access.has_pending_only(user_id):
                raise HTTPException(
                    status_code=400,
                    detail="Your gym selection starts next billing period; confirm your selection to book now"
                )
            raise HTTPException(status_code=403, detail="This gym is not part of your Daily Access selection")
        if is_daily_access_plan(plan):
            return membership, 0

        cost = credits or club.get("credits") or DEFAULT_CREDITS_PER_VISIT
        if credits_remaining(membership) < cost:
            raise HTTPException(status_code=400, detail="Insufficient credits")
        return membership, cost

    def _insert_booking(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = self.supabase.table("bookings").insert({
            **data,
            "booking_code": generate_booking_code(),
            "created_at": utcnow_iso(),
        }).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create booking")
        return result.data[0]

    def book_direct_visit(self, user_id: str, club_id: str, credits: Optional[int] = None) -> BookingResponse:
        """Reserve a drop-in visit. Credits are charged when the club checks the member in."""
        try:
            club = self._get_club(club_id)
            _, cost = self._check_membership_access(user_id, club, credits)
            booking = self._insert_booking({
                "user_id": user_id,
                "club_id": club_id,
                "class_id": None,
                "credits_used": cost,
                "status": "pending",
            })
            logger.info(f"User {user_id} booked a direct visit at club {club_id}")
            return BookingResponse(**booking)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def book_class(self, user_id: str, class_id: str) -> BookingResponse:
        try:
            cls = first_row(self.supabase.table("classes")
                            .select("*")
                            .eq("id", class_id)
                            .limit(1)
                            .execute())
            if not cls:
                raise HTTPException(status_code=404, detail="Class not found")
            start = parse_datetime(cls.get("start_time"))
            if start is None:
                raise HTTPException(status_code=400, detail="Class has no start time")
            if start <= utcnow():
                raise HTTPException(status_code=400, detail="Class has already started")
            booked = cls.get("booked_spots") or 0
            if booked >= (cls.get("max_participants") or 0):
                raise HTTPException(status_code=409, detail="Class is full")

            duplicate = self.supabase.table("bookings")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("class_id", class_id)\
                .in_("status", OPEN_STATUSES)\
                .limit(1)\
                .execute()
            if duplicate.data:
                raise HTTPException(status_code=409, detail="You have already booked this class")

            club = self._get_club(cls["club_id"])
            _, cost = self._check_membership_access(user_id, club, None)

            booking = self._insert_booking({
                "user_id": user_id,
                "club_id": cls["club_id"],
                "class_id": class_id,
                "credits_used": cost,
                "status": "confirmed",
            })
            if cost > 0:
                self.memberships.update_membership_credits(user_id, cost)
            self.supabase.table("classes")\
                .update({"booked_spots": booked + 1})\
                .eq("id", class_id)\
                .execute()
            logger.info(f"User {user_id} booked class {class_id}")
            return BookingResponse(**booking)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def cancel_booking(self, user_id: str, booking_id: str) -> Optional[BookingResponse]:
        """Cancel an open booking. Returns None when the user has no such booking."""
        try:
            booking = first_row(self.supabase.table("bookings")
                                .select("*")
                                .eq("id", booking_id)
                                .eq("user_id", user_id)
                                .limit(1)
                                .execute())
            if not booking:
                return None
            if booking["status"] not in OPEN_STATUSES:
                raise HTTPException(status_code=400, detail="Booking can no longer be cancelled")

            deleted = self.supabase.table("bookings")\
                .delete()\
                .eq("id", booking_id)\
                .execute()
            if not deleted.data:
                return None

            credits = booking.get("credits_used") or 0
            if booking["status"] == "confirmed" and credits > 0:
                self.memberships.update_membership_credits(user_id, -credits)
            if booking.get("class_id"):
                cls = first_row(self.supabase.table("classes")
                                .select("id, booked_spots")
                                .eq("id", booking["class_id"])
                                .limit(1)
                                .execute())
                if cls:
                    self.supabase.table("classes")\
                        .update({"booked_spots": max(0, (cls.get("booked_spots") or 0) - 1)})\
                        .eq("id", cls["id"])\
                        .execute()
            logger.info(f"User {user_id} cancelled booking {booking_id}")
            return BookingResponse(**booking)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return first_row(self.supabase.table("bookings")
                         .select(BOOKING_COLUMNS)
                         .eq("id", booking_id)
                         .limit(1)
                         .execute())

    def get_user_booking(self, user_id: str, booking_id: str) -> BookingResponse:
        booking = self.get_booking(booking_id)
        if not booking or booking["user_id"] != user_id:
            raise HTTPException(status_code=404, detail="Booking not found")
        return BookingResponse(**booking)

    def get_booking_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        """Codes are stored uppercase; lookups ignore case"""
        return first_row(self.supabase.table("bookings")
                         .select(BOOKING_COLUMNS)
                         .eq("booking_code", code.strip().upper())
                         .limit(1)
                         .execute())

    def list_user_bookings(self, user_id: str) -> List[BookingResponse]:
        try:
            result = self.supabase.table("bookings")\
                .select(BOOKING_COLUMNS)\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [BookingResponse(**b) for b in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def booking_qr_payload(self, user_id: str, booking_id: str) -> BookingQRResponse:
        booking = self.get_booking(booking_id)
        if not booking or booking["user_id"] != user_id:
            raise HTTPException(status_code=404, detail="Booking not found")
        class_start = parse_datetime((booking.get("classes") or {}).get("start_time"))
        valid_until = class_start or utcnow() + timedelta(hours=DIRECT_VISIT_VALIDITY_HOURS)
        payload = {
            "type": QR_TYPE,
            "bookingId": booking["id"],
            "code": booking.get("booking_code"),
            "valid_until": valid_until.isoformat(),
        }
        return BookingQRResponse(
            payload=json.dumps(payload),
            booking_code=booking.get("booking_code") or "",
            valid_until=valid_until
        )

    def resolve_checkin(self, qr_data: Optional[str] = None,
                        booking_code: Optional[str] = None) -> Dict[str, Any]:
        if qr_data:
            booking = self.get_booking(parse_checkin_qr(qr_data)["bookingId"])
        else:
            booking = self.get_booking_by_code(booking_code or "")
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def complete_booking(self, booking: Dict[str, Any], actor: Dict[str, Any],
                         cache: Optional[Dict[str, Any]] = None) -> CheckInResponse:
        """
        Check a member in. The booking row is deleted first; whoever deletes it
        owns the check-in, so two staff scanning the same code cannot both log it.
        """
        check_club_admin(booking["club_id"], actor, self.supabase, cache)
        if booking["status"] not in OPEN_STATUSES:
            raise HTTPException(status_code=400, detail=f"Booking is {booking['status']}")
        try:
            user_id = booking["user_id"]
            membership = self.memberships.get_active_membership(user_id)
            if not membership:
                raise HTTPException(status_code=403, detail="Member has no active membership")
            plan = self.memberships.get_plan(membership["plan_id"]) if membership.get("plan_id") else None
            subscription_type = subscription_type_for(membership, plan)

            charge = 0
            if booking["status"] == "pending" and subscription_type == "credits":
                charge = booking.get("credits_used") or 0
                if credits_remaining(membership) < charge:
                    raise HTTPException(status_code=400, detail="Insufficient credits")

            deleted = self.supabase.table("bookings")\
                .delete()\
                .eq("id", booking["id"])\
                .in_("status", OPEN_STATUSES)\
                .execute()
            if not deleted.data:
                raise HTTPException(status_code=409, detail="Booking was already checked in")

            try:
                visit = self.visits.log_visit(user_id, booking["club_id"], subscription_type,
                                              booking_id=booking["id"])
            except Exception:
                # Put the booking back so the member can be checked in again
                restore = {k: v for k, v in booking.items() if k not in ("clubs", "classes")}
                self.supabase.table("bookings").insert(restore).execute()
                raise

            if charge > 0:
                self.memberships.update_membership_credits(user_id, charge)
            logger.info(f"Checked in booking {booking['id']} for user {user_id} at club {booking['club_id']}")
            return CheckInResponse(
                booking_id=booking["id"],
                visit_id=visit.visit_id,
                user_id=user_id,
                club_id=booking["club_id"],
                subscription_type=subscription_type,
                credits_deducted=charge,
                cost_to_club=visit.cost_to_club
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
