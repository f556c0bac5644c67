"""
Pydantic schemas for admin authentication and TOTP management.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class LoginRequest(BaseModel):
    """Password step of the admin login."""
    username: str = Field(..., min_length=1, description="Admin username")
    password: str = Field(..., min_length=1, description="Admin password")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "admin",
                "password": "SecurePassword123"
            }
        }


class TOTPVerifyRequest(BaseModel):
    """Second factor of the admin login. Either code may be given, TOTP is tried first."""
    pending_token: str = Field(..., min_length=1, description="Token returned by /auth/login")
    totp_code: Optional[str] = Field(None, max_length=16, description="6-digit TOTP code from authenticator app")
    backup_code: Optional[str] = Field(None, max_length=32, description="8-character backup code")

    @model_validator(mode="after")
    def require_a_code(self):
        if not self.totp_code and not self.backup_code:
            raise ValueError("Please enter a TOTP code or backup code")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "pending_token": "eyJ0eXAiOiJKV1QiLCJhbGc...",
                "totp_code": "123456"
            }
        }


class TOTPCodeRequest(BaseModel):
    """A single code, used to enable or disable TOTP and to regenerate backup codes."""
    code: str = Field(..., min_length=6, max_length=32, description="TOTP code (or backup code when disabling)")


class AuthResponse(BaseModel):
    """Response from the login endpoints."""
    success: bool = Field(..., description="Whether authentication was successful")
    message: str = Field(..., description="Status message")
    data: Optional[dict] = Field(None, description="Token data if successful")

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Authentication successful",
                "data": {
                    "access_token": "eyJ0eXAiOiJKV1QiLCJhbGc...",
                    "token_type": "bearer",
                    "expires_in": 43200,
                    "method": "totp"
                }
            }
        }


class TOTPSetupData(BaseModel):
    secret: str
    provisioning_uri: str
    qr_code: str = Field(..., description="PNG data URL of the provisioning URI")
    backup_codes: List[str]


class TOTPStatusData(BaseModel):
    state: str = Field(..., description="not_configured, pending or enabled")
    remaining_backup_codes: int


class TOTPResponse(BaseModel):
    """Envelope of the TOTP management endpoints."""
    success: bool
    message: str
    data: Optional[dict] = None
