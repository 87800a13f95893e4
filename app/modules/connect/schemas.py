from pydantic import BaseModel
from typing import Optional, List


class OnboardingRequest(BaseModel):
    return_url: Optional[str] = None
    refresh_url: Optional[str] = None


class OnboardingLinkResponse(BaseModel):
    account_id: str
    url: str


class ConnectStatusResponse(BaseModel):
    club_id: str
    account_id: Optional[str] = None
    kyc_status: str = "not_started"
    payouts_enabled: bool = False
    charges_enabled: bool = False
    onboarding_complete: bool = False
    requirements_due: List[str] = []
