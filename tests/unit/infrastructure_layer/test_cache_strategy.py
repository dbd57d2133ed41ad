"""
Unit Tests for the Cache Strategy Table

Tests key generation, TTL policy, invalidation patterns and caching policy.
"""

import pytest

from cloudpc.infrastructure.cache.cache_strategy import (
    CacheCategory,
    InvalidationEvent,
    generate_key,
    get_adaptive_ttl,
    get_invalidation_patterns,
    get_strategy,
    get_warmup_plan,
    should_cache,
)


@pytest.mark.unit
class TestKeys:
    """Test key generation."""

    def test_key_with_parts(self):
        """Test parts are joined onto the category prefix."""
        assert generate_key(CacheCategory.USER, "u1") == "user:u1"
        assert generate_key("cloudpc", "detail", "pc1") == "cloudpc:detail:pc1"

    def test_key_without_parts(self):
        """Test a bare category yields just its prefix."""
        assert generate_key(CacheCategory.STATS) == "stats"

    def test_unknown_category_uses_api_policy(self):
        """Test unknown category names fall back to the API strategy."""
        assert generate_key("nonsense", "x") == "api:x"
        assert get_strategy("nonsense").ttl == 600


@pytest.mark.unit
class TestTTL:
    """Test base and adaptive TTLs."""

    @pytest.mark.parametrize(
        "category,ttl",
        [
            (CacheCategory.CLOUDPC, 3600),
            (CacheCategory.SESSION, 86400),
            (CacheCategory.USER, 7200),
            (CacheCategory.API, 600),
            (CacheCategory.STATS, 1800),
            (CacheCategory.CONFIG, 3600),
            (CacheCategory.REALTIME, 300),
            (CacheCategory.LOGS, 600),
        ],
    )
    def test_base_ttls(self, category, ttl):
        """Test each category's base TTL."""
        assert get_strategy(category).ttl == ttl

    def test_large_api_payload_halves_ttl(self):
        """Test a 12000-character API response expires in 300 seconds."""
        assert get_adaptive_ttl(CacheCategory.API, "x" * 12000) == 300

    def test_small_api_payload_extends_ttl(self):
        """Test a small API response lives 1.5x longer."""
        assert get_adaptive_ttl(CacheCategory.API, {"ok": True}) == 900

    def test_medium_api_payload_keeps_base(self):
        """Test payloads between the thresholds keep the base TTL."""
        assert get_adaptive_ttl(CacheCategory.API, "x" * 5000) == 600

    def test_other_categories_do_not_adapt(self):
        """Test only API responses adapt to payload size."""
        assert get_adaptive_ttl(CacheCategory.USER, "x" * 12000) == 7200
        assert get_adaptive_ttl(CacheCategory.CLOUDPC, {}) == 3600


@pytest.mark.unit
class TestInvalidationPatterns:
    """Test the event -> keys table."""

    def test_user_updated(self):
        """Test userUpdated purges the user and session entries."""
        patterns = get_invalidation_patterns(InvalidationEvent.USER_UPDATED, {"userId": "u1"})
        assert patterns == ["user:u1", "session:u1"]

    def test_cloudpc_changed_with_id(self):
        """Test cloudpcChanged covers the list root, the record and stats."""
        patterns = get_invalidation_patterns("cloudpcChanged", {"cloudpcId": "pc1"})
        assert patterns == ["cloudpc", "cloudpc:pc1", "stats"]

    def test_cloudpc_changed_without_id(self):
        """Test the record key is omitted without an id."""
        assert get_invalidation_patterns(InvalidationEvent.CLOUDPC_CHANGED) == ["cloudpc", "stats"]

    def test_login_and_logout(self):
        """Test session events purge only the session."""
        assert get_invalidation_patterns("userLogin", {"userId": "u1"}) == ["session:u1"]
        assert get_invalidation_patterns("userLogout", {"userId": "u1"}) == ["session:u1"]

    def test_config_updated(self):
        """Test configUpdated purges the config root."""
        assert get_invalidation_patterns(InvalidationEvent.CONFIG_UPDATED) == ["config"]

    def test_unknown_event_is_treated_as_category(self):
        """Test unknown events fall back to a single category key."""
        assert get_invalidation_patterns("stats") == ["stats"]
        assert get_invalidation_patterns("whatever") == ["api"]


@pytest.mark.unit
class TestPolicy:
    """Test caching policy and warmup plan."""

    def test_read_policy(self):
        """Test sessions and realtime data are not read-cached."""
        assert should_cache(CacheCategory.CLOUDPC, "read")
        assert not should_cache(CacheCategory.SESSION, "read")
        assert not should_cache(CacheCategory.REALTIME, "read")

    def test_write_policy(self):
        """Test only config and user entries are write-cached."""
        assert should_cache(CacheCategory.CONFIG, "write")
        assert should_cache(CacheCategory.USER, "write")
        assert not should_cache(CacheCategory.CLOUDPC, "write")

    def test_unknown_operation(self):
        """Test unknown operations are never cached."""
        assert not should_cache(CacheCategory.USER, "delete")

    def test_warmup_plan_sorted_by_priority(self):
        """Test the warmup plan lists priority 1 items first."""
        plan = get_warmup_plan()

        assert [item.priority for item in plan] == sorted(item.priority for item in plan)
        assert plan[0].category is CacheCategory.CONFIG
        assert len(plan) == 5
