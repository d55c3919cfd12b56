"""Admin settings schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SettingsUpdate(BaseModel):
    order_time_limit: str = Field(alias="orderTimeLimit")
    home_banner_image_url: str | None = Field(default=None, alias="homeBannerImageUrl")

    model_config = ConfigDict(populate_by_name=True)


class SettingsRead(BaseModel):
    """Full settings row, visible to administrators."""

    order_time_limit: str = Field(serialization_alias="orderTimeLimit")
    home_banner_image_url: str | None = Field(default=None, serialization_alias="homeBannerImageUrl")
    created_at: datetime | None = Field(default=None, serialization_alias="createdAt")
    updated_at: datetime | None = Field(default=None, serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)
