"""Tests for response classification."""

import json
import logging

import pytest

from crawler.models import BlockingDetection, BlockType
from crawler.resilience.blocking_detector import (
    BLOCKING_STATUS_CODES,
    BlockingDetector,
    log_blocking_incident,
)
from crawler.resilience.stats import BlockingStats

from conftest import CHALLENGE_PAGE, CLEAN_PAGE, html_page


@pytest.fixture
def detector():
    return BlockingDetector(stats=BlockingStats())


@pytest.mark.parametrize("status", sorted(BLOCKING_STATUS_CODES))
def test_blocking_status_codes_always_block(detector, status):
    detection = detector.classify(status, {}, CLEAN_PAGE)

    assert detection.is_blocked
    assert detection.block_type == BlockType.HTTP_STATUS
    assert detection.confidence == pytest.approx(0.7)
    assert detection.status_code == status


def test_clean_page_is_not_blocked(detector):
    detection = detector.classify(200, {"content-type": "text/html"}, CLEAN_PAGE)

    assert not detection.is_blocked
    assert detection.block_type is None
    assert detection.confidence == 0
    assert detection.indicators == []


def test_challenge_phrase_blocks_as_challenge_page(detector):
    detection = detector.classify(200, {}, CHALLENGE_PAGE)

    assert detection.is_blocked
    assert detection.block_type == BlockType.CHALLENGE_PAGE
    assert detection.confidence >= 0.3
    assert "Content pattern: checking your browser before accessing" in detection.indicators


def test_error_patterns_block_as_error_page(detector):
    detection = detector.classify(200, {}, html_page("<h1>Error 1020</h1><p>Access denied</p>"))

    assert detection.is_blocked
    assert detection.block_type == BlockType.ERROR_PAGE
    assert detection.confidence == pytest.approx(0.8)


def test_challenge_category_wins_over_error_category(detector):
    content = html_page("<p>Security check</p><p>Rate limited</p>")

    detection = detector.classify(200, {}, content)

    assert detection.block_type == BlockType.CHALLENGE_PAGE
    assert detection.confidence == pytest.approx(0.7)


def test_status_code_takes_priority_and_confidence_is_not_clamped(detector):
    content = html_page("<p>Cloudflare Ray ID: 1234</p>")

    detection = detector.classify(403, {}, content)

    assert detection.block_type == BlockType.HTTP_STATUS
    # 0.7 status + "cloudflare ray id" + "cloudflare"
    assert detection.confidence == pytest.approx(1.3)
    assert detection.confidence > 1.0


def test_soft_signals_below_threshold_do_not_block(detector):
    detection = detector.classify(200, {"CF-RAY": "abc"}, "<html>short</html>")

    assert detection.confidence == pytest.approx(0.3)
    assert not detection.is_blocked
    assert detection.block_type is None
    assert "Minimal content length" in detection.indicators
    assert "Cloudflare headers detected" in detection.indicators


def test_soft_signals_block_at_threshold():
    detector = BlockingDetector(threshold=0.3)

    detection = detector.classify(200, {"server": "cloudflare"}, "<html>short</html>")

    assert detection.is_blocked


def test_short_doctype_page_is_not_minimal(detector):
    detection = detector.classify(200, {}, "<!DOCTYPE html><html></html>")

    assert detection.confidence == 0
    assert not detection.is_blocked


def test_missing_status_and_content(detector):
    detection = detector.classify(None, None, None)

    assert not detection.is_blocked
    assert detection.confidence == 0


def test_every_classification_is_counted():
    stats = BlockingStats()
    detector = BlockingDetector(stats=stats)

    detector.classify(200, {}, CLEAN_PAGE)
    detector.classify(503, {}, CLEAN_PAGE)
    detector.classify(200, {}, CHALLENGE_PAGE)

    snapshot = stats.snapshot()
    assert snapshot["total_requests"] == 3
    assert snapshot["blocked_requests"] == 2


def test_incident_is_logged_as_json(caplog):
    detection = BlockingDetection(
        is_blocked=True,
        block_type=BlockType.HTTP_STATUS,
        confidence=0.7,
        indicators=["HTTP 403 status code"],
        status_code=403,
    )

    with caplog.at_level(logging.WARNING, logger="crawler.resilience.blocking_detector"):
        log_blocking_incident("https://example.test/a", detection, 2)

    message = caplog.records[-1].getMessage()
    payload = json.loads(message.split(": ", 1)[1])
    assert payload["url"] == "https://example.test/a"
    assert payload["attempt"] == 2
    assert payload["block_type"] == "HTTP_STATUS"
    assert payload["status_code"] == 403
    assert "timestamp" in payload
