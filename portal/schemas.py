from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TokenPayload(BaseModel):
    """Token endpoint answer; stored in the session as `user`."""
    model_config = ConfigDict(extra="allow")

    access_token: str
    id_token: Optional[str] = None
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    created_at: Optional[int] = None
    expires_in: Optional[int] = None


class Profile(BaseModel):
    id: Optional[str] = Field(default=None, description="ID token `sub` claim")
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    last_activity_on: Optional[str] = None


class ActivityPage(BaseModel):
    activities: List[Dict[str, Any]] = Field(default_factory=list)
    page: int = 1
    limit: int = 20
    total_pages: int = 1
