"""
Cloud PC API Models

Create/update bodies for ``/api/cloudpc``. ``to_service_dict`` hands the
service plain values (enum members become their strings).
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from cloudpc.core.config.constants import MAX_TAGS, Currency, Location, OperatingSystem


class PricingModel(BaseModel):
    hourly: float | None = Field(default=None, ge=0)
    currency: Currency = Currency.CNY


def _check_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    if len(tags) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags are allowed")
    cleaned = [t.strip() for t in tags]
    for tag in cleaned:
        if not 1 <= len(tag) <= 20:
            raise ValueError("Each tag must be between 1 and 20 characters")
    return cleaned


class _CloudPCFields(BaseModel):
    def to_service_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_unset=True)
        pricing = data.get("pricing")
        if pricing and pricing.get("hourly") is None:
            pricing.pop("hourly", None)
        return data


class CloudPCCreateRequest(_CloudPCFields):
    name: str = Field(..., min_length=1, max_length=50)
    os: OperatingSystem
    cpu: int = Field(..., ge=1, le=32, description="vCPU count")
    memory: int = Field(..., ge=1, le=128, description="Memory in GB")
    storage: int = Field(..., ge=10, le=10000, description="Disk in GB")
    bandwidth: int | None = Field(default=None, ge=1, le=10000, description="Mbps")
    location: Location | None = None
    pricing: PricingModel | None = None
    tags: list[str] | None = None
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        return _check_tags(v)


class CloudPCUpdateRequest(_CloudPCFields):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    os: OperatingSystem | None = None
    cpu: int | None = Field(default=None, ge=1, le=32)
    memory: int | None = Field(default=None, ge=1, le=128)
    storage: int | None = Field(default=None, ge=10, le=10000)
    bandwidth: int | None = Field(default=None, ge=1, le=10000)
    location: Location | None = None
    pricing: PricingModel | None = None
    tags: list[str] | None = None
    description: str | None = Field(default=None, max_length=500)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        return _check_tags(v)
