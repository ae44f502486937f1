from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from badcompany.auth.admin import AdminIdentity, current_admin
from badcompany.database import SessionFactory, get_session_factory
from badcompany.schemas.newsletter import SubscriberTagAdd, SubscriberTagRead, TagCreate, TagRead
from badcompany.services.tag_service import TagService

router = APIRouter()


@router.get("/newsletter-tags", response_model=List[TagRead])
async def list_tags(
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await TagService(session_factory).list_tags()


@router.post("/newsletter-tags", response_model=TagRead, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await TagService(session_factory).create_tag(data.name, data.color, data.description)


@router.get("/newsletters-subscribers/{subscriber_id}/tags", response_model=List[SubscriberTagRead])
async def subscriber_tags(
    subscriber_id: int,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await TagService(session_factory).subscriber_tags(subscriber_id)


@router.post(
    "/newsletters-subscribers/{subscriber_id}/tags",
    response_model=SubscriberTagRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_subscriber_tag(
    subscriber_id: int,
    data: SubscriberTagAdd,
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await TagService(session_factory).add_tag(subscriber_id, data.tag_id)


@router.delete("/newsletters-subscribers/{subscriber_id}/tags")
async def remove_subscriber_tag(
    subscriber_id: int,
    tag_id: Optional[int] = Query(None, alias="tagId"),
    admin: AdminIdentity = Depends(current_admin),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    await TagService(session_factory).remove_tag(subscriber_id, tag_id)
    return {"success": True}
