from prometheus_client import Counter, Histogram

# Counters
login_attempts_total = Counter(
    "admin_login_attempts_total", "Password step of the admin login", ["status"]
)
second_factor_total = Counter(
    "admin_second_factor_total", "Second factor verifications", ["method", "status"]
)
totp_changes_total = Counter(
    "admin_totp_changes_total", "TOTP setup, enable, disable and backup code regeneration", ["action", "status"]
)

# Histogram for request durations
auth_request_latency = Histogram(
    "admin_auth_request_latency_seconds",
    "Time spent processing admin auth requests",
    ["endpoint"]
)
