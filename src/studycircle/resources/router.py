"""Resource endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.database import get_session
from studycircle.redis_client import get_redis_dep
from studycircle.resources.schemas import (
    DownloadResponse,
    ResourceCreateRequest,
    ResourceResponse,
    ResourceUpdateRequest,
)
from studycircle.resources.service import create_resource, list_resources, record_download, update_resource

router = APIRouter(prefix="/api/v1/resources", tags=["Resources"])


@router.get("", response_model=list[ResourceResponse])
async def resources_index(
    subject_id: uuid.UUID | None = Query(None),
    group_id: uuid.UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    """Shared resources, newest first."""
    resources = await list_resources(db, subject_id, group_id, limit, offset)
    return [ResourceResponse.model_validate(r) for r in resources]


@router.post("", response_model=ResourceResponse, status_code=201)
async def share_resource(
    body: ResourceCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    resource = await create_resource(db, actor, redis=redis, **body.model_dump())
    await db.commit()
    return ResourceResponse.model_validate(resource)


@router.patch("/{resource_id}", response_model=ResourceResponse)
async def edit_resource(
    resource_id: uuid.UUID,
    body: ResourceUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    resource = await update_resource(db, actor, resource_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return ResourceResponse.model_validate(resource)


@router.post("/{resource_id}/download", response_model=DownloadResponse)
async def download(resource_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    """Count a download."""
    count = await record_download(db, resource_id)
    await db.commit()
    return DownloadResponse(id=resource_id, download_count=count)
