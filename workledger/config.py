import os

from dotenv import load_dotenv

load_dotenv()

# Persistence
DATA_DIR = os.getenv("DATA_DIR", "data")

# Similarity scan
MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", 0.15))
FLAG_THRESHOLD = int(os.getenv("FLAG_THRESHOLD", 40))
SHINGLE_SIZE = int(os.getenv("SHINGLE_SIZE", 3))
MAX_OVERLAP_PHRASES = int(os.getenv("MAX_OVERLAP_PHRASES", 20))
SCAN_WORKERS = int(os.getenv("SCAN_WORKERS", 1))

# Submissions
MIN_CONTENT_LENGTH = int(os.getenv("MIN_CONTENT_LENGTH", 50))
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", 10 * 1024 * 1024))  # 10MB default

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Notifications
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL", "")
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", 10))

# Server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 8000))
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
