from pydantic import BaseModel
from typing import Optional


class WebhookAck(BaseModel):
    received: bool = True
    type: Optional[str] = None
    duplicate: bool = False
