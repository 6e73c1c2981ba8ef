"""
Demo Agent Endpoints
Rate-limited session start and the live event stream
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from paycall_backend.blockchain.chain_client import get_chain_client
from paycall_backend.core.exceptions import NotFoundError
from paycall_backend.database.connection import async_session_maker, get_redis
from paycall_backend.orchestrator.demo_agent import DemoAgentSession
from paycall_backend.orchestrator.session_manager import SessionManager
from paycall_backend.services.llm_client import LLMClient
from paycall_backend.services.rate_limiter import RateLimiter, demo_rate_limiter

logger = logging.getLogger(__name__)
router = APIRouter()

def build_demo_session(session_id: str) -> DemoAgentSession:
    return DemoAgentSession(
        session_id,
        session_factory=async_session_maker,
        chain=get_chain_client(),
        llm=LLMClient()
    )

session_manager = SessionManager(factory=build_demo_session)

def get_session_manager() -> SessionManager:
    return session_manager

def get_demo_rate_limiter() -> RateLimiter:
    return demo_rate_limiter

@router.get("/start")
async def start_demo(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    redis_client: Optional[redis.Redis] = Depends(get_redis),
    limiter: RateLimiter = Depends(get_demo_rate_limiter),
    manager: SessionManager = Depends(get_session_manager)
):
    """Open a demo session; the workflow starts when an observer connects"""
    identity = x_user_id or (request.client.host if request.client else "unknown")
    await limiter.hit(redis_client, identity)

    session = manager.create()
    return {
        "sessionId": session.session_id,
        "wsUrl": f"/demo/connect/{session.session_id}",
    }

@router.websocket("/connect/{session_id}")
async def connect_demo(
    websocket: WebSocket,
    session_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    await websocket.accept()
    try:
        session = await manager.attach(session_id, websocket)
    except NotFoundError as e:
        await websocket.send_json(e.to_dict())
        await websocket.close(code=4404)
        return

    try:
        while True:
            message = await websocket.receive_text()
            await session.handle_message(message)
    except WebSocketDisconnect:
        logger.info(f"Observer disconnected from session {session_id}")
    finally:
        manager.detach(session_id, websocket)
