"""
Unit Tests for Configuration Constants

Tests enum values that travel over the wire or into the database.
"""

import pytest

from cloudpc.core.config.constants import (
    MAX_CLOUDPC_LOGS,
    MAX_PAGE_SIZE,
    WS_POLICY_VIOLATION,
    CloudPCStatus,
    LifecycleAction,
    Stage,
    UserRole,
    UserStatus,
    WSMessageType,
)


@pytest.mark.unit
class TestEnums:
    """Test enum members and their string values."""

    def test_cloudpc_statuses(self):
        """Test the closed set of cloud PC states."""
        assert {s.value for s in CloudPCStatus} == {
            "stopped",
            "starting",
            "running",
            "stopping",
            "restarting",
            "error",
        }

    def test_lifecycle_actions(self):
        """Test the three lifecycle actions."""
        assert [a.value for a in LifecycleAction] == ["start", "stop", "restart"]

    def test_user_enums(self):
        """Test user roles and account states."""
        assert {r.value for r in UserRole} == {"user", "admin"}
        assert {s.value for s in UserStatus} == {"active", "suspended", "deactivated"}

    def test_enums_compare_as_strings(self):
        """Test str-based enums compare equal to their values."""
        assert CloudPCStatus.RUNNING == "running"
        assert WSMessageType.TERMINAL_INPUT == "terminal_input"

    def test_stage_values_are_unique(self):
        """Test no two stages share a log tag."""
        values = [s.value for s in Stage]
        assert len(values) == len(set(values))


@pytest.mark.unit
class TestLimits:
    """Test numeric constants."""

    def test_policy_violation_code(self):
        """Test the WebSocket close code used for rejected handshakes."""
        assert WS_POLICY_VIOLATION == 1008

    def test_collection_caps(self):
        """Test capped collections and page size."""
        assert MAX_CLOUDPC_LOGS == 100
        assert MAX_PAGE_SIZE == 100
