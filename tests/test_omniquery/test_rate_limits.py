"""Tests for provider usage tracking (fake clock, no sleeping)."""

import threading

from src.omniquery.tools.providers.rate_limits import RATE_LIMIT_COOLDOWN, ProviderUsageStats


class TestProviderUsageStats:
    def test_counters(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_success()
        stats.record_failure("HTTP 500 from Finnhub")
        stats.record_rate_limit("429 Too Many Requests")
        assert (stats.success_count, stats.failure_count, stats.rate_limit_count) == (1, 1, 1)
        assert stats.total_calls == 3
        assert stats.last_failure_reason == "429 Too Many Requests"

    def test_success_rate_defaults_to_one(self, clock):
        assert ProviderUsageStats("Yahoo Finance", clock).success_rate() == 1.0

    def test_success_rate(self, clock):
        stats = ProviderUsageStats("Yahoo Finance", clock)
        for _ in range(3):
            stats.record_success()
        stats.record_failure("boom")
        assert stats.success_rate() == 0.75

    def test_minute_window_resets_hour_window_persists(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_success()
        stats.record_success()
        assert stats.calls_last_minute() == 2
        assert stats.calls_last_hour() == 2

        clock.advance(60)
        assert stats.calls_last_minute() == 0
        assert stats.calls_last_hour() == 2

        stats.record_success()
        assert stats.calls_last_minute() == 1
        assert stats.calls_last_hour() == 3

    def test_hour_window_resets(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_success()
        clock.advance(3600)
        assert stats.calls_last_hour() == 0

    def test_cooldown_is_five_minutes(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        assert not stats.is_rate_limited_recently()
        stats.record_rate_limit("429")
        assert stats.is_rate_limited_recently()
        clock.advance(RATE_LIMIT_COOLDOWN - 1)
        assert stats.is_rate_limited_recently()
        clock.advance(1)
        assert not stats.is_rate_limited_recently()

    def test_failure_does_not_start_cooldown(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_failure("HTTP 500")
        assert not stats.is_rate_limited_recently()

    def test_reset(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_rate_limit("429")
        stats.reset()
        assert stats.total_calls == 0
        assert stats.calls_last_minute() == 0
        assert not stats.is_rate_limited_recently()

    def test_summary_flags_rate_limited(self, clock):
        stats = ProviderUsageStats("Finnhub", clock)
        stats.record_rate_limit("429")
        assert "[RATE LIMITED]" in stats.summary()


class TestRateLimitTracker:
    def test_empty_summary(self, tracker):
        assert tracker.all_stats_summary() == "No provider usage recorded."

    def test_stats_are_per_provider(self, tracker):
        tracker.record_success("Finnhub")
        tracker.record_rate_limit("Alpha Vantage", "Rate limit reached")
        assert tracker.get_stats("Finnhub").success_count == 1
        assert tracker.get_stats("Alpha Vantage").rate_limit_count == 1
        assert not tracker.is_rate_limited_recently("Finnhub")
        assert tracker.is_rate_limited_recently("Alpha Vantage")

    def test_get_stats_returns_same_object(self, tracker):
        assert tracker.get_stats("Finnhub") is tracker.get_stats("Finnhub")

    def test_summary_lists_providers_sorted(self, tracker):
        tracker.record_success("Yahoo Finance")
        tracker.record_failure("Finnhub", "boom")
        lines = tracker.all_stats_summary().splitlines()
        assert lines[0].startswith("Finnhub:")
        assert lines[1].startswith("Yahoo Finance:")

    def test_reset_all(self, tracker):
        tracker.record_success("Finnhub")
        tracker.reset_all()
        assert tracker.get_stats("Finnhub").total_calls == 0

    def test_concurrent_updates_are_not_lost(self, tracker):
        def worker():
            for _ in range(200):
                tracker.record_success("Finnhub")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        stats = tracker.get_stats("Finnhub")
        assert stats.success_count == 1600
        assert stats.calls_last_minute() == 1600
