from datetime import datetime
from enum import Enum
from typing import Any, Optional
import json

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime
    user_metadata: dict[str, Any] = Field(default_factory=dict)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "AuthEvent":
        try:
            return cls(str(getattr(value, "value", value)))
        except ValueError:
            return cls.OTHER


class BackendFailure(BaseModel):
    code: str = "unknown"
    message: str


class AuthResult(BaseModel):
    user: Optional[AuthUser] = None
    failure: Optional[BackendFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class ProfileResult(BaseModel):
    row: Optional[dict[str, Any]] = None
    failure: Optional[BackendFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class _Payload(BaseModel):
    @model_validator(mode='before')
    @classmethod
    def parse_input(cls, v):
        if isinstance(v, bytes):
            v = v.decode("utf-8")
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                pass
        return v


class PhoneLoginPayload(_Payload):
    phone: str

    @field_validator("phone")
    @classmethod
    def phone_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Enter your phone number")
        return v


class OtpVerifyPayload(PhoneLoginPayload):
    token: str

    @field_validator("token")
    @classmethod
    def token_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Enter the code sent to your phone")
        return v


class PasswordLoginPayload(_Payload):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterPayload(_Payload):
    email: EmailStr
    password: str
    confirm_password: str
    username: str
    full_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("username")
    @classmethod
    def username_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please fill in all fields")
        return v

    @model_validator(mode="after")
    def check_passwords(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        if len(self.password) < 6:
            raise ValueError("Password must be at least 6 characters")
        return self

    def additional_data(self) -> dict:
        return {
            "username": self.username,
            "full_name": self.full_name,
            "phone": self.phone,
        }
