"""
leoconnect.api.routes.messages — Direct messages & conversations
=================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from leoconnect.api.deps import (
    CurrentUser,
    get_engine,
    get_push_dispatcher,
    get_session,
    page_window,
)
from leoconnect.services import conversation_service
from leoconnect.services.notification_service import notify_message
from leoconnect.services.push_dispatcher import PushDispatcher

router = APIRouter(tags=["messages"])


class MessageCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    receiver_id: str | None = None
    content: str | None = None


@router.post("/messages")
def send_message(
    body: MessageCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
    engine: Engine = Depends(get_engine),
    push: PushDispatcher = Depends(get_push_dispatcher),
):
    message = conversation_service.send_message(
        session, user.subject_id, body.receiver_id, body.content
    )
    data = conversation_service.message_to_dict(message)
    notify_message(engine, push, message.receiver_id, user.subject_id,
                   user.display_name, message.content)
    return data


@router.get("/conversations")
def conversations(
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    page = conversation_service.get_conversations(
        session, user.subject_id, limit=limit, offset=offset
    )
    return page.to_dict(lambda c: c.to_dict())


@router.delete("/conversations/{counterpart_id}")
def delete_conversation(
    counterpart_id: str, user: CurrentUser, session: Session = Depends(get_session)
):
    removed = conversation_service.delete_conversation(session, user.subject_id, counterpart_id)
    return {"success": True, "deleted": removed}


@router.get("/messages/{counterpart_id}")
def thread(
    counterpart_id: str,
    user: CurrentUser,
    window: tuple[int, int] = Depends(page_window),
    session: Session = Depends(get_session),
):
    limit, offset = window
    return conversation_service.get_messages(
        session, user.subject_id, counterpart_id, limit=limit, offset=offset
    ).to_dict()


@router.delete("/messages/{message_id}")
def delete_message(message_id: str, user: CurrentUser, session: Session = Depends(get_session)):
    conversation_service.delete_message(session, user.subject_id, message_id)
    return {"success": True}
