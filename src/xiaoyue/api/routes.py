"""FastAPI application factory and routes."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from xiaoyue.api.errors import install_error_handlers
from xiaoyue.api.schemas import ChatRequest, SessionRequest, TokenAnalyzeRequest
from xiaoyue.app import XiaoyueApp
from xiaoyue.log import bind_request_context, get_logger
from xiaoyue.service import ChatService

logger = get_logger(__name__)

router = APIRouter()


def get_service(request: Request) -> ChatService:
    return request.app.state.xiaoyue.service


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "service": "xiaoyue-backend"}


@router.post("/api/session")
async def open_session(
    payload: Optional[SessionRequest] = None,
    service: ChatService = Depends(get_service),
) -> dict[str, Any]:
    payload = payload or SessionRequest()
    view = await service.open_session(
        session_id=payload.session_key,
        locale=payload.locale,
        wallet_address=payload.wallet,
    )
    return view.to_dict()


@router.get("/api/session/{session_id}/messages")
async def session_messages(
    session_id: str,
    service: ChatService = Depends(get_service),
) -> dict[str, Any]:
    messages = await service.session_messages(session_id)
    return {"sessionId": session_id, "messages": [m.to_dict() for m in messages]}


@router.get("/api/token/{mint}")
async def token_info(
    mint: str,
    service: ChatService = Depends(get_service),
) -> dict[str, Any]:
    snapshot = await service.token_info(mint)
    return snapshot.to_dict()


@router.post("/api/token/analyze")
async def analyze_token(
    payload: TokenAnalyzeRequest,
    service: ChatService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.analyze_token(
        mint=payload.mint,
        session_id=payload.session_key,
        locale=payload.locale,
        wallet_address=payload.wallet,
    )
    return {
        "sessionId": result.session_id,
        "analysis": result.analysis,
        "token": result.token.to_dict(),
        "freeMessagesLeft": result.free_messages_left,
    }


@router.post("/api/chat")
async def chat(
    payload: ChatRequest,
    service: ChatService = Depends(get_service),
) -> dict[str, Any]:
    result = await service.chat(
        prompt=payload.prompt,
        session_id=payload.session_key,
        locale=payload.locale,
        wallet_address=payload.wallet,
    )
    return {
        "sessionId": result.session_id,
        "message": result.message,
        "walletAddress": result.wallet_address,
        "freeMessagesLeft": result.free_messages_left,
    }


def create_app(xiaoyue: XiaoyueApp) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await xiaoyue.start()
        try:
            yield
        finally:
            await xiaoyue.stop()

    app = FastAPI(title="xiaoyue backend", version="0.1.0", lifespan=lifespan)
    app.state.xiaoyue = xiaoyue

    app.add_middleware(
        CORSMiddleware,
        allow_origins=xiaoyue.config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        bind_request_context(request_id=uuid.uuid4().hex[:12], path=request.url.path)
        return await call_next(request)

    install_error_handlers(app)
    app.include_router(router)
    return app
