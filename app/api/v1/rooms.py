"""Token-gated group practice rooms

Room create and join both charge group_practice, then hand back a channel
token for the media service. Membership broadcast happens on the realtime
channel itself; no room state is stored here.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from datetime import datetime, timezone
import logging
import uuid

from app.api.deps import get_current_user_id
from app.schemas.room import JoinRoomRequest, RoomCreatedResponse, RoomJoinedResponse
from app.services.channel_tokens import ChannelTokenIssuer
from app.services.charge_gate import ServiceCharge, require_tokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/room", tags=["Rooms"])


def get_channel_issuer(request: Request) -> ChannelTokenIssuer:
    return request.app.state.channel_issuer


def _require_configured(issuer: ChannelTokenIssuer) -> None:
    if not issuer.configured:
        logger.error("Room requested but the channel token issuer is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "Rooms Unavailable",
                "message": "Group practice is temporarily unavailable. Please try again later.",
            },
        )


@router.post("/create", response_model=RoomCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    user_id: str = Depends(get_current_user_id),
    charge: ServiceCharge = Depends(require_tokens("group_practice")),
    issuer: ChannelTokenIssuer = Depends(get_channel_issuer),
):
    """Open a new room hosted by the caller (charges group_practice)"""
    _require_configured(issuer)
    outcome = await charge()

    room_id = str(uuid.uuid4())
    credential = issuer.issue(room_id, user_id)
    logger.info(f"Room {room_id} created by {user_id}")

    return RoomCreatedResponse(
        room_id=room_id,
        host_uid=user_id,
        channel_token=credential["token"],
        token_expires_at=credential["expires_at"],
        app_id=issuer.app_id,
        created_at=datetime.now(timezone.utc),
        tokens_charged=outcome.cost,
        balance=outcome.new_balance,
    )


@router.post("/join", response_model=RoomJoinedResponse)
async def join_room(
    request: JoinRoomRequest,
    user_id: str = Depends(get_current_user_id),
    charge: ServiceCharge = Depends(require_tokens("group_practice")),
    issuer: ChannelTokenIssuer = Depends(get_channel_issuer),
):
    """
    Join an existing room (charges group_practice)

    Example:
    ```
    POST /api/v1/room/join
    Body: {"room_id": "<room uuid>"}
    ```
    """
    _require_configured(issuer)
    outcome = await charge()

    credential = issuer.issue(request.room_id, user_id)
    logger.info(f"User {user_id} joined room {request.room_id}")

    return RoomJoinedResponse(
        room_id=request.room_id,
        user_id=user_id,
        channel_token=credential["token"],
        token_expires_at=credential["expires_at"],
        app_id=issuer.app_id,
        joined_at=datetime.now(timezone.utc),
        tokens_charged=outcome.cost,
        balance=outcome.new_balance,
    )
