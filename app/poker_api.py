import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from app.config import (
    BATCH_WRITE_CHUNK_SIZE,
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_MAX_AGE,
    CORS_ORIGINS,
    LOG_LEVEL,
    LOG_REDACT_SECRETS,
    STALE_ROOM_RETENTION_DAYS,
)
from app.exceptions import (
    ConditionFailedError,
    NotFoundError,
    PokerError,
    StoreUnavailableError,
)
from app.logging_config import get_logger, setup_logging
from app.models import Room
from app.services.room_service import RoomService
from app.storage.store import DynamoStore

setup_logging(log_level=LOG_LEVEL, enable_secret_redaction=LOG_REDACT_SECRETS)
logger = get_logger()


def build_room_service() -> RoomService:
    return RoomService(
        DynamoStore(),
        retention=timedelta(days=STALE_ROOM_RETENTION_DAYS),
        batch_size=BATCH_WRITE_CHUNK_SIZE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bind one room service (and its DynamoDB client) to the app for its lifetime."""
    logger.info("Starting Planning Poker API...")
    app.state.room_service = build_room_service()
    yield
    logger.info("Shutdown complete")


app = FastAPI(
    title="Planning Poker API",
    description="Shared room and vote state for planning poker sessions (single DynamoDB table)",
    version="1.0.0",
    lifespan=lifespan
)

logger.info(f"🔒 CORS:mode - Allowing origins: {CORS_ORIGINS}")
app.add_middleware(
            CORSMiddleware,
            allow_origins=CORS_ORIGINS,
            allow_credentials=CORS_ALLOW_CREDENTIALS,
            allow_methods=CORS_ALLOW_METHODS,
            allow_headers=CORS_ALLOW_HEADERS,
            max_age=CORS_MAX_AGE,
        )


def get_room_service(request: Request) -> RoomService:
    return request.app.state.room_service


class AddUserRequest(BaseModel):
    username: str
    userId: str | None = None

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if not v or not v.strip():
            raise ValueError('Username cannot be empty')
        if len(v) > 64:
            raise ValueError('Username too long (max 64 characters)')
        return v.strip()


class UsernameRequest(AddUserRequest):
    pass


class VoteRequest(BaseModel):
    vote: str = ""


class RevealRequest(BaseModel):
    isRevealed: bool


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "message": str(exc)})


@app.exception_handler(ConditionFailedError)
async def condition_failed_handler(request: Request, exc: ConditionFailedError):
    logger.info(f"Conditional write rejected on {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"success": False, "message": str(exc)})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "Storage temporarily unavailable", "retryable": exc.retryable},
    )


@app.exception_handler(PokerError)
async def poker_error_handler(request: Request, exc: PokerError):
    logger.exception(f"Unhandled poker error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal error"})


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/rooms", status_code=201)
async def create_room(service: RoomService = Depends(get_room_service)) -> Dict[str, Any]:
    return await service.create_room()


@app.get("/rooms/{room_id}", response_model=Room)
async def get_room(room_id: str, service: RoomService = Depends(get_room_service)) -> Room:
    return await service.get_room(room_id)


@app.delete("/rooms/{room_id}", status_code=204)
async def delete_room(room_id: str, service: RoomService = Depends(get_room_service)) -> Response:
    await service.delete_room(room_id)
    return Response(status_code=204)


@app.post("/rooms/{room_id}/users", status_code=201)
async def add_user(
    room_id: str,
    request: AddUserRequest,
    service: RoomService = Depends(get_room_service),
) -> Dict[str, str]:
    return await service.add_user(room_id, request.username, user_id=request.userId)


@app.put("/rooms/{room_id}/users/{user_key}/vote")
async def set_vote(
    room_id: str,
    user_key: str,
    request: VoteRequest,
    service: RoomService = Depends(get_room_service),
):
    """Votes are checked against the room's sizes here; the service stores any string."""
    if request.vote:
        valid_sizes = await service.get_valid_sizes(room_id)
        if request.vote not in valid_sizes:
            logger.warning(f"Rejected vote {request.vote!r} for room {room_id}")
            return JSONResponse(
                status_code=422,
                content={"success": False, "message": f"Vote must be one of {valid_sizes}"},
            )
    await service.set_vote(room_id, user_key, request.vote)
    return {"success": True, "roomId": room_id, "vote": request.vote}


@app.put("/rooms/{room_id}/users/{user_key}/username")
async def set_username(
    room_id: str,
    user_key: str,
    request: UsernameRequest,
    service: RoomService = Depends(get_room_service),
) -> Dict[str, Any]:
    await service.set_username(room_id, user_key, request.username)
    return {"success": True, "roomId": room_id, "username": request.username}


@app.put("/rooms/{room_id}/revealed")
async def set_cards_revealed(
    room_id: str,
    request: RevealRequest,
    service: RoomService = Depends(get_room_service),
) -> Dict[str, Any]:
    return await service.set_cards_revealed(room_id, request.isRevealed)


@app.post("/maintenance/stale-rooms")
async def delete_stale_rooms(service: RoomService = Depends(get_room_service)) -> Dict[str, int]:
    deleted = await service.delete_stale_rooms()
    return {"deleted": deleted}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Track the connection for its lifetime; room membership is left to the client protocol."""
    service: RoomService = websocket.app.state.room_service
    connection_id = uuid.uuid4().hex
    await service.connect_websocket(connection_id)
    await websocket.accept()
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Connection {connection_id} closed by client")
    finally:
        await service.disconnect_websocket(connection_id)
