"""In-process stand-in for the chat backend's REST surface."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any

import jwt
from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

SECRET = "integration-secret"

_bearer_scheme = HTTPBearer()


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, SECRET, algorithm="HS256")


@dataclass
class BackendState:
    messages: dict[str, dict[str, Any]] = field(default_factory=dict)
    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    conversations: list[dict[str, Any]] = field(default_factory=list)


class DirectStartRequest(BaseModel):
    recipientId: str


class ReactRequest(BaseModel):
    emoji: str


def get_state(request: Request) -> BackendState:
    return request.app.state.backend


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> str:
    try:
        payload = jwt.decode(credentials.credentials, SECRET, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    return str(payload["sub"])


CurrentUser = Annotated[str, Depends(get_current_user)]
State = Annotated[BackendState, Depends(get_state)]

router = APIRouter(prefix="/api")


@router.get("/chat/user/conversations")
async def list_conversations(user: CurrentUser, state: State) -> list[dict[str, Any]]:
    return [c for c in state.conversations if user in c["participants"]]


@router.get("/chat/{conversation_id}")
async def fetch_history(conversation_id: str, user: CurrentUser, state: State) -> list[dict[str, Any]]:
    return [m for m in state.messages.values() if m["chatId"] == conversation_id]


@router.delete("/chat/message/{message_id}")
async def delete_message(message_id: str, user: CurrentUser, state: State) -> dict[str, str]:
    msg = state.messages.get(message_id)
    if msg is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if msg["sender"]["_id"] != user:
        raise HTTPException(status_code=403, detail="Not your message")
    del state.messages[message_id]
    return {"message": "Message deleted"}


@router.post("/chat/direct/start")
async def start_direct(body: DirectStartRequest, user: CurrentUser) -> dict[str, str]:
    first, second = sorted([user, body.recipientId])
    return {"conversationId": f"direct-{first}-{second}"}


@router.post("/message/{message_id}/react")
async def react(message_id: str, body: ReactRequest, user: CurrentUser, state: State) -> dict[str, Any]:
    msg = state.messages.get(message_id)
    if msg is None:
        raise HTTPException(status_code=404, detail="Message not found")
    reactions = [r for r in msg["reactions"] if r["user"] != user]
    reactions.append({"emoji": body.emoji, "user": user})
    msg["reactions"] = reactions
    return msg


@router.post("/media/upload")
async def upload(user: CurrentUser, file: UploadFile = File(...)) -> dict[str, str]:
    await file.read()
    return {"url": f"/uploads/{file.filename}", "type": file.content_type or "application/octet-stream"}


@router.get("/user/{user_id}")
async def fetch_user(user_id: str, user: CurrentUser, state: State) -> dict[str, Any]:
    found = state.users.get(user_id)
    if found is None:
        raise HTTPException(status_code=404, detail="User not found")
    return found


def create_fake_backend(state: BackendState | None = None) -> FastAPI:
    app = FastAPI(title="Fake chat backend")
    app.state.backend = state or BackendState()
    app.include_router(router)
    return app
