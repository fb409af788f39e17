#  Map Vault - IP Rate Limiter
#
#  Shared slowapi limiter for the public auth routes. Per-user endpoint
#  quotas live in services/rate_limiter.py.
#
#  Depends on: config.py
#  Used by:    app.py, routes/auth.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from mapvault.config import SERVER_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address, default_limits=[SERVER_RATE_LIMIT])
