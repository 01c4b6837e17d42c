"""Schemas for the gated group practice rooms"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class JoinRoomRequest(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=100, description="Room to join")


class RoomCreatedResponse(BaseModel):
    room_id: str
    host_uid: str
    channel_token: str
    token_expires_at: int
    app_id: Optional[str] = None
    created_at: datetime
    tokens_charged: int
    balance: int


class RoomJoinedResponse(BaseModel):
    room_id: str
    user_id: str
    channel_token: str
    token_expires_at: int
    app_id: Optional[str] = None
    joined_at: datetime
    tokens_charged: int
    balance: int
