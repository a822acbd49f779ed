"""Content fingerprinting and subject filtering for inbound documents."""

from src.intake.ingestion.fingerprint import (
    FingerprintFallback,
    generate_content_key,
    is_fallback_key,
    normalize_attachment_names,
    normalize_sender,
    normalize_subject,
    truncate_timestamp,
)
from src.intake.ingestion.subject_filter import MATCH_MODES, compile_patterns, subject_matches

__all__ = [
    "FingerprintFallback",
    "MATCH_MODES",
    "compile_patterns",
    "generate_content_key",
    "is_fallback_key",
    "normalize_attachment_names",
    "normalize_sender",
    "normalize_subject",
    "subject_matches",
    "truncate_timestamp",
]
