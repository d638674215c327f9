"""Input adapters that decode uploads and normalize contact rows."""

from .decoder import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    decode,
    decode_csv,
    decode_spreadsheet,
    detect_format,
    is_allowed_upload,
)
from .normalize import (
    HEADER_VARIANTS,
    ROW_VARIANTS,
    NormalizationResult,
    normalize,
    normalize_row,
)

__all__ = [
    "ALLOWED_EXTENSIONS",
    "ALLOWED_MIME_TYPES",
    "HEADER_VARIANTS",
    "ROW_VARIANTS",
    "NormalizationResult",
    "decode",
    "decode_csv",
    "decode_spreadsheet",
    "detect_format",
    "is_allowed_upload",
    "normalize",
    "normalize_row",
]
