import os
from slowapi.util import get_remote_address
import slowapi
limiter = slowapi.Limiter(
    key_func=get_remote_address,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "TRUE").upper() == "TRUE",
)
