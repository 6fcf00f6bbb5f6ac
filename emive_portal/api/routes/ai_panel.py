from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from emive_portal.api.dependencies.auth import require_admin
from emive_portal.api.dependencies.database import require_database
from emive_portal.schemas.ai_panel import (
    ChatReply,
    ChatRequest,
    DataSource,
    PanelStats,
    SessionSummary,
    SessionTranscript,
)
from emive_portal.services import ai_panel as ai_service

router = APIRouter(prefix="/api/ai-panel", tags=["AI Panel"])


@router.get("/stats", response_model=PanelStats)
async def panel_stats(
    _: None = Depends(require_database),
    __: dict = Depends(require_admin),
):
    return await ai_service.get_stats()


@router.get("/data-sources", response_model=list[DataSource])
async def panel_data_sources(
    _: None = Depends(require_database),
    __: dict = Depends(require_admin),
):
    return ai_service.data_sources(await ai_service.get_stats())


@router.get("/sessions", response_model=list[SessionSummary])
async def panel_recent_sessions(
    _: None = Depends(require_database),
    __: dict = Depends(require_admin),
):
    return await ai_service.recent_sessions()


@router.get("/sessions/{session_id}", response_model=SessionTranscript)
async def panel_session_transcript(
    session_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(require_admin),
):
    transcript = await ai_service.session_transcript(session_id)
    if not transcript:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return transcript


@router.post("/chat", response_model=ChatReply)
async def panel_chat(
    payload: ChatRequest,
    _: None = Depends(require_database),
    __: dict = Depends(require_admin),
):
    try:
        return await ai_service.chat(message.model_dump() for message in payload.messages)
    except ai_service.AIPanelError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
