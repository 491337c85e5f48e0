from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr


UserRole = Literal["user", "vendor"]

# Columns of the `profiles` table a user may edit. `email` lives on the auth
# account and is only merged into local state.
PROFILE_COLUMNS = ("full_name", "username", "phone", "bio", "location", "profile_photo")


class UserData(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    profile_photo: Optional[str] = None
    role: UserRole = "user"
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    profile_photo: Optional[str] = None

    def provided(self) -> dict:
        """Only the keys the caller actually sent."""
        return self.model_dump(exclude_unset=True)

    def profile_row(self) -> dict:
        return {key: value for key, value in self.provided().items() if key in PROFILE_COLUMNS}
