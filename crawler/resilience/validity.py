"""
Data validity checks for extracted profile records.

Catches block pages that render with HTTP 200 and slip past the
response-level detector. Both functions are pure.
"""

from typing import Optional

from crawler.models import (
    ACCESS_DENIED,
    ERROR,
    FAILED_AFTER_RETRIES,
    RETRY_EXHAUSTED,
    STATUS_BLOCKED,
    STATUS_ERROR,
    BlockType,
    ProfileRecord,
)

CHALLENGE_TEXT = (
    'just a moment',
    'un momento',
    'checking your browser',
    'please wait',
    'cloudflare',
    'ddos protection',
)

INVALID_NICKNAMES = frozenset([
    ACCESS_DENIED,
    ERROR,
    'FAILED',
    RETRY_EXHAUSTED,
    'Just a moment...',
    'Un momento…',
])

INVALID_STATUSES = frozenset([STATUS_BLOCKED, STATUS_ERROR, FAILED_AFTER_RETRIES])

CDN_DOMAIN = 'cloudflare.com'

MIN_NICKNAME_LENGTH = 2


def is_valid_profile(record: Optional[ProfileRecord]) -> bool:
    """
    Decide whether an extracted record is a real profile.

    Args:
        record: Extracted record, None if extraction produced nothing

    Returns:
        True if the record may be persisted
    """
    if record is None:
        return False

    texts = [
        (record.nickname or '').lower(),
        (record.description or '').lower(),
        (record.about or '').lower(),
    ]
    for indicator in CHALLENGE_TEXT:
        if any(indicator in text for text in texts):
            return False

    if record.nickname in INVALID_NICKNAMES:
        return False

    if record.status in INVALID_STATUSES:
        return False

    if not record.nickname or len(record.nickname.strip()) < MIN_NICKNAME_LENGTH:
        return False

    if record.link and CDN_DOMAIN in record.link:
        return False

    return True


def determine_block_type(record: Optional[ProfileRecord]) -> BlockType:
    """
    Map an invalid record to a coarse block category for logging.

    Args:
        record: Record that failed is_valid_profile

    Returns:
        BlockType describing the most likely cause
    """
    if record is None:
        return BlockType.NO_DATA

    nickname = (record.nickname or '').lower()

    if 'just a moment' in nickname or 'un momento' in nickname:
        return BlockType.CLOUDFLARE_CHALLENGE

    if 'access denied' in nickname or 'accès refusé' in nickname or nickname == ACCESS_DENIED.lower():
        return BlockType.ACCESS_DENIED

    if record.status == STATUS_BLOCKED:
        return BlockType.BLOCKED_STATUS

    if record.link and CDN_DOMAIN in record.link:
        return BlockType.CLOUDFLARE_REDIRECT

    return BlockType.INCOMPLETE_DATA
