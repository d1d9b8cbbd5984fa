"""
File Handler Utilities
Attachment metadata validation and storage naming
"""

import os
import uuid
from datetime import datetime
from typing import Optional, Tuple

from src.config.settings import settings
from src.utils.logger import setup_logger

logger = setup_logger()


def validate_file(mime_type: str, file_size: int) -> Tuple[bool, Optional[str]]:
    """
    Validate attachment metadata

    Args:
        mime_type: Declared MIME type
        file_size: Size in bytes

    Returns:
        Tuple[bool, Optional[str]]: (is_valid, error_message)
    """
    if mime_type.lower() not in settings.allowed_mime_types_list:
        return False, (
            f"File type '{mime_type}' not allowed. "
            f"Allowed types: {', '.join(settings.allowed_mime_types_list)}"
        )

    if file_size <= 0:
        return False, "File is empty"

    if file_size > settings.MAX_FILE_SIZE:
        max_size_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
        return False, f"File size exceeds maximum allowed size of {max_size_mb:g}MB"

    return True, None


def generate_stored_filename(original_name: str, claim_id: int) -> str:
    """
    Build a unique storage filename

    Returns:
        str: Filename in format claim<ID>_YYYYMMDDHHMMSS_<hex><ext>
    """
    _, ext = os.path.splitext(original_name)
    timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    return f"claim{claim_id}_{timestamp}_{uuid.uuid4().hex[:8]}{ext.lower()}"


def build_storage_url(filename: str) -> str:
    """Public URL for a stored file"""
    return f"{settings.STORAGE_BASE_URL.rstrip('/')}/{filename}"
