import os

# Settings are cached on first import; pin test values before any hrpay module loads.
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("ATTENDANCE_TIMEZONE", "Asia/Manila")
os.environ.setdefault("SCHEMA_GUARD_STRICT", "false")
