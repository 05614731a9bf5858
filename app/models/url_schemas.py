from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UrlRecord(BaseModel):
    """A stored short URL"""
    id: int
    original_url: str      # The normalized long URL
    short_code: str        # Unique, never changes once created
    created_at: datetime   # Set by the store on insert
    click_count: int = 0   # Only ever goes up

    def to_api(self, short_url=None):
        """Serialize with the camelCase keys the API uses"""
        data = {
            "id": self.id,
            "originalUrl": self.original_url,
            "shortCode": self.short_code,
            "createdAt": self.created_at.isoformat(),
            "clickCount": self.click_count,
        }
        if short_url is not None:
            data["shortUrl"] = short_url
        return data


class ShortenRequest(BaseModel):
    """What users send when creating a short URL"""
    model_config = ConfigDict(populate_by_name=True)

    # Plain strings here, the service does its own URL validation
    url: Optional[str] = None
    custom_code: Optional[str] = Field(default=None, alias="customCode")
