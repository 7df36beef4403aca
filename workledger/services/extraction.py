import structlog
from pathlib import Path

from workledger.core.errors import UnsupportedFormatError

logger = structlog.get_logger()

SUPPORTED_TEXT_TYPES = {"text/plain", "text/markdown"}
SUPPORTED_TEXT_EXTENSIONS = {".txt", ".md"}

def is_supported(declared_type: str) -> bool:
    """Accept a MIME type (parameters ignored) or a filename/extension hint."""
    if not declared_type:
        return False
    declared = declared_type.lower().strip()
    mime = declared.split(";", 1)[0].strip()
    if mime in SUPPORTED_TEXT_TYPES:
        return True
    suffix = declared if declared.startswith(".") else Path(declared).suffix
    return suffix in SUPPORTED_TEXT_EXTENSIONS

def extract_text(data: bytes, declared_type: str) -> str:
    """
    Turn an uploaded document into plain text.

    Only plain-text documents are understood; anything else raises
    UnsupportedFormatError before content reaches the similarity scan.
    """
    if not is_supported(declared_type):
        logger.warning("Unsupported document type", declared_type=declared_type)
        raise UnsupportedFormatError(declared_type)

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.warning("Document is not valid UTF-8", declared_type=declared_type, error=str(e))
        raise UnsupportedFormatError(declared_type) from e

    text = text.replace("\r\n", "\n").strip()
    logger.info("Extracted document text", declared_type=declared_type, characters=len(text))
    return text
