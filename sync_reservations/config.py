import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "reservations"

# Per-transaction statement timeout applied to every store call (PostgreSQL only)
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))

# Naive upstream timestamps are interpreted in this zone
TIMEZONE = os.getenv("TIMEZONE", "Asia/Seoul")

DEFAULT_CHECK_OUT_TIME = os.getenv("DEFAULT_CHECK_OUT_TIME", "11:00")

WALK_IN_CHANNEL = os.getenv("WALK_IN_CHANNEL", "walk-in")

OTA_CHANNELS: frozenset[str] = frozenset(
    [
        "Yanolja",
        "GoodHotel",
        "GoodMotel",
        "Agoda",
        "CoolStay",
        "Booking",
        "Expedia",
        *[c.strip() for c in os.getenv("EXTRA_OTA_CHANNELS", "").split(",") if c.strip()],
    ]
)

# KakaoTalk business message (Alimtalk) delivery
ALIMTALK_API_URL = os.getenv("ALIMTALK_API_URL", "https://api.some-kakao-biz.com/v1/sendAlimTalk")
ALIMTALK_API_KEY = os.getenv("ALIMTALK_API_KEY")
ALIMTALK_SENDER_KEY = os.getenv("ALIMTALK_SENDER_KEY")
NOTIFIER_TIMEOUT_SECONDS = float(os.getenv("NOTIFIER_TIMEOUT_SECONDS", "5"))
