"""Rate limiting configuration using slowapi.

A module-level Limiter shared by routers for per-endpoint limits
(``@limiter.limit(...)``) and wired into the app in main.py. Only the
upload endpoint carries a limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
