import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

# A room reports full once it holds more than this many members
ROOM_FULL_THRESHOLD = int(os.getenv("ROOM_FULL_THRESHOLD", 3))

MAX_USERNAME_LENGTH = int(os.getenv("MAX_USERNAME_LENGTH", 100))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", 2000))

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", None)
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", None)
TWILIO_TTL_SECONDS = int(os.getenv("TWILIO_TTL_SECONDS", 86400))

# A peer that has not drained a frame within this many seconds is treated as gone
SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 5))
