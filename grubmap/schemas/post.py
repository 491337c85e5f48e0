from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.location import AddressParts, format_address


FOOD_CATEGORIES = [
    "🍕 Italian",
    "🍔 Fast Food",
    "🍣 Japanese",
    "🌮 Mexican",
    "🥗 Healthy",
    "🍝 Pasta",
    "🥩 Steakhouse",
    "🍜 Asian",
    "🥪 Sandwiches",
    "🍰 Desserts",
    "☕ Cafe",
    "🍺 Bar & Grill",
]


class PostCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: str
    category: str
    location: Optional[str] = None
    address: Optional[AddressParts] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    price: Optional[float] = None
    image_url: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please enter a title for your post")
        return v

    @field_validator("description")
    @classmethod
    def description_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please enter a description")
        return v

    @field_validator("category")
    @classmethod
    def known_category(cls, v: str) -> str:
        if v not in FOOD_CATEGORIES:
            raise ValueError("Please select a category")
        return v

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        if v is not None and float(v) < 0:
            raise ValueError("Price cannot be negative")
        return v

    @model_validator(mode="after")
    def resolve_location(self):
        location = (self.location or "").strip()
        if not location and self.address is not None:
            location = format_address(self.address)
        self.location = location or None
        return self

    def to_row(self, user_id: str, username: Optional[str]) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "price": self.price,
            "image_url": self.image_url,
            "user_id": user_id,
            "username": username,
        }


class PostOut(BaseModel):
    id: str
    title: str
    description: str
    category: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    user_id: str
    username: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ImageUploadOut(BaseModel):
    path: str
    url: str
