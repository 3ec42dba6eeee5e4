"""
hackathon_api/rate_limit.py
Shared slowapi limiter

Attached to `app.state.limiter` in main.py and used as a decorator on the
routes that need it. Disabled entirely when RATE_LIMIT_ENABLED is false.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from hackathon_api.config.settings import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
