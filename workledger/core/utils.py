import os
import uuid
import tempfile
import threading
import structlog
from datetime import datetime, timedelta, timezone
from pathlib import Path

logger = structlog.get_logger()

def new_record_id() -> str:
    """Generate a new unique record ID."""
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class MonotonicClock:
    """UTC clock that never returns the same instant twice, so timestamp sort order matches call order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = None

    def now(self) -> datetime:
        with self._lock:
            current = utcnow()
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current

def ensure_dir_exists(dir_path: str) -> str:
    """Ensure directory exists, create if it doesn't."""
    try:
        Path(dir_path).mkdir(parents=True, exist_ok=True)
        return dir_path
    except Exception as e:
        logger.error("Failed to create directory", dir_path=dir_path, error=str(e))
        raise

def atomic_write_text(file_path: str, text: str) -> None:
    """Write text to a sibling temp file and swap it in, so readers never see a half-written file."""
    directory = os.path.dirname(os.path.abspath(file_path))
    ensure_dir_exists(directory)

    temp_fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_path, file_path)
    except Exception:
        cleanup_temp_file(temp_path)
        raise

def cleanup_temp_file(file_path: str) -> bool:
    """Clean up temporary file safely."""
    try:
        if file_path and os.path.exists(file_path):
            os.unlink(file_path)
            logger.debug("Cleaned up temporary file", file_path=file_path)
            return True
        return False
    except Exception as e:
        logger.warning("Failed to cleanup temporary file", file_path=file_path, error=str(e))
        return False

def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB"]
    i = 0
    while size_bytes >= 1024 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.1f} {size_names[i]}"
