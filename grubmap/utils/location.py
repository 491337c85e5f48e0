from typing import Optional
from pydantic import BaseModel


class AddressParts(BaseModel):
    """Reverse-geocoded address as reported by the device location service."""

    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


def format_address(address: AddressParts) -> str:
    parts = [address.street, address.city, address.region, address.country]
    return ", ".join(part.strip() for part in parts if part and part.strip())
