#  Map Vault - Chat History Routes
#
#  The caller's own historian Q&A archive: list newest first, record an
#  exchange, delete an entry. Entries of other users answer 404.
#
#  Depends on: container.py, services/chat_history.py, middleware/auth.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Query, Response

from mapvault.container import Container
from mapvault.middleware.auth import get_current_user
from mapvault.models.schemas import ChatEntryCreate, ChatEntryOut
from mapvault.services.chat_history import ChatHistoryService

router = APIRouter(prefix="/chat-history", tags=["chat-history"])


@router.get("")
@inject
async def list_chat_history(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: dict = Depends(get_current_user),
    history: ChatHistoryService = Depends(Provide[Container.chat_history]),
) -> list[ChatEntryOut]:
    entries = await history.list_for_user(user["id"], limit=limit, offset=offset)
    return [ChatEntryOut(**e) for e in entries]


@router.post("", status_code=201)
@inject
async def record_chat_entry(
    body: ChatEntryCreate,
    user: dict = Depends(get_current_user),
    history: ChatHistoryService = Depends(Provide[Container.chat_history]),
) -> ChatEntryOut:
    return ChatEntryOut(**await history.record(user["id"], body.question, body.answer))


@router.delete("/{entry_id}", status_code=204)
@inject
async def delete_chat_entry(
    entry_id: str,
    user: dict = Depends(get_current_user),
    history: ChatHistoryService = Depends(Provide[Container.chat_history]),
) -> Response:
    await history.delete(user["id"], entry_id)
    return Response(status_code=204)
