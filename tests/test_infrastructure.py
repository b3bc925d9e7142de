# tests/test_infrastructure.py
"""Tests for infrastructure components"""
import json
import logging

import pytest

from kaizbot.config import Settings, warn_on_risky_config
from kaizbot.infra.inbound_repo import InMemoryInboundEventRepository
from kaizbot.infra.logging_config import JSONFormatter, mask_user_id
from kaizbot.infra.metrics import MetricsCollector, Timer, get_metrics_collector
from kaizbot.infra.uptime import UptimeTracker, format_uptime


class TestInboundEventRepository:

    @pytest.mark.asyncio
    async def test_first_time_then_duplicate(self):
        repo = InMemoryInboundEventRepository()
        assert await repo.seen_or_mark("m_1") is False
        assert await repo.seen_or_mark("m_1") is True
        assert len(repo) == 1

    @pytest.mark.asyncio
    async def test_bounded_memory_forgets_oldest(self):
        repo = InMemoryInboundEventRepository(max_size=2)
        await repo.seen_or_mark("a")
        await repo.seen_or_mark("b")
        await repo.seen_or_mark("c")

        assert len(repo) == 2
        assert await repo.seen_or_mark("a") is False
        assert await repo.seen_or_mark("c") is True


class TestUptime:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "0h 0m 0s"),
        (59.9, "0h 0m 59s"),
        (3725.4, "1h 2m 5s"),
        (90061, "25h 1m 1s"),
    ])
    def test_format(self, seconds, expected):
        assert format_uptime(seconds) == expected

    def test_tracker_counts_up(self):
        tracker = UptimeTracker()
        assert tracker.seconds >= 0
        assert tracker.formatted().startswith("0h 0m")


class TestMetrics:
    def test_counters_with_labels(self):
        collector = MetricsCollector()
        collector.inc_counter("events", labels={"kind": "text"})
        collector.inc_counter("events", labels={"kind": "text"})
        collector.inc_counter("events", labels={"kind": "postback"})

        counters = collector.get_metrics()["counters"]
        assert sum(counters.values()) == 3
        assert len(counters) == 2

    def test_timer_records_histogram(self):
        get_metrics_collector().reset()
        with Timer("capability_call_seconds", capability="gpt3"):
            pass

        histograms = get_metrics_collector().get_metrics()["histograms"]
        assert any(k.startswith("capability_call_seconds") for k in histograms)


class TestLogging:
    def test_mask_user_id(self):
        assert mask_user_id("1234567890123") == "1234****23"
        assert mask_user_id("12345") == "***"
        assert mask_user_id("") == "***"

    def test_json_formatter_masks_user_and_keeps_context(self):
        record = logging.LogRecord("kaizbot.test", logging.INFO, __file__, 1, "hello", None, None)
        record.user_id = "1234567890123"
        record.capability = "gpt3"

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["user_id"] == "1234****23"
        assert data["capability"] == "gpt3"


class TestConfig:
    def test_production_requires_credentials(self):
        s = Settings(app_env="prod", page_access_token=None, verify_token=None, kaiz_api_key=None, app_secret=None)
        missing = s.validate_required_for_production()
        assert set(missing) == {"page_access_token", "verify_token", "kaiz_api_key", "app_secret"}

    def test_dev_requires_nothing(self):
        assert Settings(app_env="dev").validate_required_for_production() == []

    def test_risky_config_warnings(self):
        s = Settings(app_env="dev", page_access_token=None, kaiz_api_key=None)
        warnings = warn_on_risky_config(s)
        assert any("page_access_token" in w for w in warnings)
        assert any("kaiz_api_key" in w for w in warnings)
