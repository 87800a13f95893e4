from slowapi import Limiter
from slowapi.util import get_remote_address
from app.config.settings import settings

# Shared by main.py and routers that apply stricter per-route limits
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
