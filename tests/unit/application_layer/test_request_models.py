"""
Unit Tests for API Request Models

Tests the pydantic validation rules applied to request bodies.
"""

import pytest
from pydantic import ValidationError

from cloudpc.application.api.models import (
    CloudPCCreateRequest,
    CloudPCUpdateRequest,
    PasswordChangeRequest,
    RegisterRequest,
)


@pytest.mark.unit
class TestRegisterRequest:
    """Test registration body rules."""

    def test_email_normalised(self):
        """Test the email is trimmed and lower-cased."""
        body = RegisterRequest(name=" Ada ", email=" ADA@Example.COM ", password="secret123")

        assert body.email == "ada@example.com"
        assert body.name == "Ada"

    @pytest.mark.parametrize("password", ["abcdefg", "1234567"])
    def test_password_needs_letters_and_digits(self, password):
        """Test single-class passwords are rejected."""
        with pytest.raises(ValidationError):
            RegisterRequest(name="Ada", email="ada@example.com", password=password)

    def test_phone_format(self):
        """Test only mainland mobile numbers are accepted."""
        assert RegisterRequest(name="Ada", email="ada@example.com", password="secret123", phone="13812345678")

        with pytest.raises(ValidationError):
            RegisterRequest(name="Ada", email="ada@example.com", password="secret123", phone="12345")


@pytest.mark.unit
class TestPasswordChangeRequest:
    """Test password change rules."""

    def test_confirmation_must_match(self):
        """Test a mismatched confirmation is rejected."""
        with pytest.raises(ValidationError):
            PasswordChangeRequest(currentPassword="old1", newPassword="newpass1", confirmPassword="newpass2")


@pytest.mark.unit
class TestCloudPCRequests:
    """Test cloud PC body rules."""

    def test_service_dict_uses_plain_values(self):
        """Test enums become strings and unset fields are dropped."""
        body = CloudPCCreateRequest(name="box", os="Windows 11", cpu=2, memory=4, storage=50, location="shanghai")

        assert body.to_service_dict() == {
            "name": "box",
            "os": "Windows 11",
            "cpu": 2,
            "memory": 4,
            "storage": 50,
            "location": "shanghai",
        }

    def test_pricing_without_hourly(self):
        """Test a currency-only pricing block leaves the hourly default to the service."""
        body = CloudPCUpdateRequest(pricing={"currency": "USD"})

        assert body.to_service_dict() == {"pricing": {"currency": "USD"}}

    def test_create_with_currency_only_pricing(self):
        """Test a create body with a currency-only or null-hourly pricing block."""
        body = CloudPCCreateRequest(
            name="box", os="Windows 11", cpu=2, memory=4, storage=50, pricing={"currency": "USD"}
        )
        explicit_null = CloudPCCreateRequest(
            name="box", os="Windows 11", cpu=2, memory=4, storage=50, pricing={"hourly": None, "currency": "USD"}
        )

        assert body.to_service_dict()["pricing"] == {"currency": "USD"}
        assert explicit_null.to_service_dict()["pricing"] == {"currency": "USD"}

    def test_too_many_tags(self):
        """Test the tag count limit."""
        with pytest.raises(ValidationError):
            CloudPCUpdateRequest(tags=[f"t{i}" for i in range(11)])

    def test_storage_bounds(self):
        """Test storage below the minimum is rejected."""
        with pytest.raises(ValidationError):
            CloudPCCreateRequest(name="box", os="Windows 11", cpu=2, memory=4, storage=5)
