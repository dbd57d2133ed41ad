"""
Auth API Models
===============

Request bodies for ``/api/auth``. FastAPI rejects anything that fails these
rules before the route runs; the validation handler renders the failures as
``{"success": false, "error": "Validation failed", "details": [...]}``.
"""

import re

from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please enter a valid email address")
    return value


def _check_password_strength(value: str) -> str:
    """At least one letter and one digit."""
    if not re.search(r"[A-Za-z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain both letters and digits")
    return value


def _check_phone(value: str | None) -> str | None:
    if value is not None and not PHONE_PATTERN.match(value):
        raise ValueError("Please enter a valid phone number")
    return value


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50, description="Display name")
    email: str = Field(..., max_length=254, description="Login email, stored lower-cased")
    password: str = Field(..., min_length=6, max_length=128)
    phone: str | None = Field(default=None, description="Mainland mobile number")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be between 2 and 50 characters")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return _check_phone(v)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _check_email(v)


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = None
    avatar: str | None = Field(default=None, max_length=500)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return _check_phone(v)


class PasswordChangeRequest(BaseModel):
    """
    The new password needs letters and digits, at least 6 characters, and
    must equal ``confirmPassword``.
    """

    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6, max_length=128)
    confirmPassword: str = Field(..., min_length=1)

    @field_validator("newPassword")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChangeRequest":
        if self.newPassword != self.confirmPassword:
            raise ValueError("Password confirmation does not match")
        return self


class RefreshRequest(BaseModel):
    refreshToken: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refreshToken: str | None = None
