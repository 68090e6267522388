from __future__ import annotations

from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    api_key: str = Field(..., alias="apiKey", min_length=1)
    subject: str = Field(..., min_length=1, description="Actor id recorded as author_id on movements")
    capabilities: list[str] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "apiKey": "super-secret-key",
                "subject": "user-42",
                "capabilities": ["org.device.write", "own.device_log.write"],
            }
        },
    }


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class RefreshRequest(BaseModel):
    refresh_token: str
