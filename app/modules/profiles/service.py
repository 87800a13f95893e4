from supabase import Client
from app.database.supabase_client import first_row
from app.core.time_utils import utcnow_iso
from app.modules.profiles.schemas import ProfileUpdate, ProfileResponse, PublicProfileResponse
from typing import Optional
from fastapi import HTTPException

PUBLIC_FIELDS = "id, display_name, avatar_url"


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_profile(self, user_id: str) -> Optional[ProfileResponse]:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        row = first_row(result)
        return ProfileResponse(**row) if row else None

    def get_profile(self, user_id: str) -> ProfileResponse:
        try:
            profile = self.find_profile(user_id)
            if not profile:
                raise HTTPException(status_code=404, detail="Profile not found")
            return profile
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_public_profile(self, user_id: str) -> PublicProfileResponse:
        """Display name and avatar only; hidden profiles are reported as not found"""
        try:
            result = self.supabase.table("profiles")\
                .select(f"{PUBLIC_FIELDS}, profile_visibility")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()
            row = first_row(result)
            if not row or row.get("profile_visibility") is False:
                raise HTTPException(status_code=404, detail="Profile not found")
            return PublicProfileResponse(**row)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        try:
            update_data = profile_data.model_dump(exclude_none=True)
            if not update_data:
                return self.get_profile(user_id)
            update_data["updated_at"] = utcnow_iso()

            result = self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            row = first_row(result)
            if not row:
                raise HTTPException(status_code=404, detail="Profile not found")
            return ProfileResponse(**row)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
