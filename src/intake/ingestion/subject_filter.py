"""Subject pattern filter deciding which messages are intake candidates."""

import logging
import re
from typing import Iterable, List, Pattern, Sequence, Union

logger = logging.getLogger(__name__)

MATCH_MODES = ("any", "all")


def compile_patterns(patterns: Iterable[Union[str, Pattern]]) -> List[Pattern]:
    """Compile subject patterns case-insensitively.

    Raises:
        re.error: If a pattern is not a valid regular expression.
    """
    return [
        pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
        for pattern in patterns
    ]


def subject_matches(subject: str, patterns: Sequence[Pattern], match_mode: str = "any") -> bool:
    """Check a subject against the configured patterns.

    Args:
        subject: Message subject.
        patterns: Compiled patterns; an empty list accepts every subject.
        match_mode: "any" accepts on the first matching pattern, "all"
            requires every pattern to match.

    Returns:
        True if the message should be processed.
    """
    if match_mode not in MATCH_MODES:
        raise ValueError(f"match_mode must be one of {MATCH_MODES}, got {match_mode!r}")
    if not patterns:
        return True

    matched = [pattern.pattern for pattern in patterns if pattern.search(subject or "")]
    logger.debug(f"Subject {subject!r}: {len(matched)}/{len(patterns)} patterns matched")

    if match_mode == "any":
        return bool(matched)
    return len(matched) == len(patterns)
