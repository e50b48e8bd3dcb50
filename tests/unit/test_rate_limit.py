"""Unit tests for the in-memory rate limit store."""

from src.api.middleware.rate_limit import InMemoryRateLimitStore


def test_allows_up_to_limit():
    store = InMemoryRateLimitStore()
    assert all(store.check_and_incr("user:1", 3, 60) for _ in range(3))
    assert store.check_and_incr("user:1", 3, 60) is False


def test_identifiers_are_independent():
    store = InMemoryRateLimitStore()
    assert store.check_and_incr("user:1", 1, 60)
    assert store.check_and_incr("ip:10.0.0.1", 1, 60)
    assert store.check_and_incr("user:1", 1, 60) is False


def test_window_expiry_resets_count():
    store = InMemoryRateLimitStore()
    assert store.check_and_incr("user:1", 1, 0)
    # Zero-length window: every call starts a fresh window
    assert store.check_and_incr("user:1", 1, 0)


def test_reset_and_cleanup():
    store = InMemoryRateLimitStore()
    store.check_and_incr("user:1", 1, 60)
    store.cleanup_old(max_age_seconds=3600)
    assert store.check_and_incr("user:1", 1, 60) is False
    store.reset()
    assert store.check_and_incr("user:1", 1, 60)
