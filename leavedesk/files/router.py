"""Attachment endpoints — upload, delete, unattached list, orphan cleanup."""


import uuid

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import UserRole
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.database import get_db
from leavedesk.files.schemas import CleanupOut, LeaveFileOut
from leavedesk.files.service import FileService
from leavedesk.users.models import User

router = APIRouter(prefix="", tags=["files"])


# ── POST /upload ────────────────────────────────────────────────────

@router.post("/upload", response_model=list[LeaveFileOut], status_code=201)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def upload_files(
    request: Request,
    files: list[UploadFile] = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upload up to 5 supporting documents. Attach them later via ``file_ids``."""
    return await FileService.upload_files(db, user.id, files)


# ── GET /temporary ──────────────────────────────────────────────────

@router.get("/temporary", response_model=list[LeaveFileOut])
async def temporary_files(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's uploads not yet attached to a request."""
    return await FileService.list_temporary(db, user.id)


# ── POST /cleanup-orphaned (reviewers) ──────────────────────────────

@router.post("/cleanup-orphaned", response_model=CleanupOut)
async def cleanup_orphaned(
    _: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    removed = await FileService.cleanup_orphaned(db)
    return CleanupOut(removed=removed)


# ── DELETE /{file_id} ───────────────────────────────────────────────

@router.delete("/{file_id}")
async def delete_file(
    file_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FileService.delete_file(db, file_id, user)
    return {"message": "File deleted"}
