"""Attachment storage — upload, delete, list unattached, orphan cleanup.

Files are stored on local disk under ``UPLOAD_DIR/leave_attachments`` with
a UUID-only name; the original filename is kept in the database only.

Disk changes follow the session's transaction. Deleted bytes are removed
only once the deleting transaction commits, and freshly written bytes are
removed again if their transaction rolls back.
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

from fastapi import UploadFile
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from leavedesk.common.constants import (
    ALLOWED_ATTACHMENT_TYPES,
    MAX_ATTACHMENTS,
    LeaveStatus,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from leavedesk.config import settings
from leavedesk.files.models import LeaveFile
from leavedesk.leave.models import LeaveRequest
from leavedesk.users.models import User

logger = logging.getLogger(__name__)


_REMOVE_ON_COMMIT = "leavedesk.files.remove_on_commit"
_REMOVE_ON_ROLLBACK = "leavedesk.files.remove_on_rollback"


def storage_dir() -> Path:
    return Path(settings.UPLOAD_DIR) / "leave_attachments"


def _remove_stored(names) -> None:
    directory = storage_dir()
    for name in names:
        try:
            (directory / name).unlink(missing_ok=True)
        except OSError:
            # The transaction is already settled; the file stays for an operator
            logger.exception("Could not remove stored file %s", name)


@event.listens_for(Session, "after_commit")
def _settle_files_on_commit(session: Session) -> None:
    session.info.pop(_REMOVE_ON_ROLLBACK, None)
    _remove_stored(session.info.pop(_REMOVE_ON_COMMIT, ()))


@event.listens_for(Session, "after_rollback")
def _settle_files_on_rollback(session: Session) -> None:
    session.info.pop(_REMOVE_ON_COMMIT, None)
    _remove_stored(session.info.pop(_REMOVE_ON_ROLLBACK, ()))


class FileService:
    """Async attachment operations."""

    @staticmethod
    async def upload_files(
        db: AsyncSession,
        uploader_id: uuid.UUID,
        files: Sequence[UploadFile],
    ) -> list[LeaveFile]:
        """Validate every file first, then store them all.

        A single bad file rejects the whole batch.
        """
        if not files:
            raise ValidationException({"files": ["No files uploaded"]})
        if len(files) > MAX_ATTACHMENTS:
            raise ValidationException(
                {"files": [f"You can upload a maximum of {MAX_ATTACHMENTS} files"]}
            )

        errors: list[str] = []
        payloads: list[tuple[UploadFile, bytes]] = []
        for upload in files:
            name = upload.filename or "unnamed"
            if upload.content_type not in ALLOWED_ATTACHMENT_TYPES:
                errors.append(f"File type '{upload.content_type}' is not allowed ({name}).")
                continue
            contents = await upload.read()
            if len(contents) > settings.max_upload_bytes:
                errors.append(
                    f"{name} is too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB."
                )
                continue
            payloads.append((upload, contents))
        if errors:
            raise ValidationException({"files": errors})

        target = storage_dir()
        target.mkdir(parents=True, exist_ok=True)

        stored: list[LeaveFile] = []
        written: list[str] = []
        try:
            for upload, contents in payloads:
                ext = os.path.splitext(upload.filename or "")[1].lower()
                stored_name = f"{uuid.uuid4().hex}{ext}"
                (target / stored_name).write_bytes(contents)
                written.append(stored_name)

                record = LeaveFile(
                    uploaded_by=uploader_id,
                    original_name=upload.filename or stored_name,
                    stored_name=stored_name,
                    url=f"{settings.UPLOAD_URL_PREFIX}/{stored_name}",
                    size=len(contents),
                    content_type=upload.content_type,
                )
                db.add(record)
                stored.append(record)

            await db.flush()
        except Exception:
            _remove_stored(written)
            raise

        db.info.setdefault(_REMOVE_ON_ROLLBACK, []).extend(written)
        for record in stored:
            await db.refresh(record)

        logger.info(
            "User %s uploaded %d file(s): %s",
            uploader_id, len(stored), ", ".join(r.stored_name for r in stored),
        )
        return stored

    @staticmethod
    async def discard(db: AsyncSession, record: LeaveFile) -> None:
        """Delete the row now and the stored bytes once the session commits."""
        db.info.setdefault(_REMOVE_ON_COMMIT, []).append(record.stored_name)
        await db.delete(record)

    @staticmethod
    async def delete_file(
        db: AsyncSession,
        file_id: uuid.UUID,
        user: User,
    ) -> None:
        """Delete an upload. Files on a decided request stay put."""
        record = await db.get(LeaveFile, file_id)
        if record is None:
            raise NotFoundException("File", file_id)
        if record.uploaded_by != user.id and not user.is_approver:
            raise ForbiddenException("You can only delete files you uploaded.")

        if record.leave_id is not None:
            leave = await db.get(LeaveRequest, record.leave_id)
            if leave is not None and leave.status != LeaveStatus.pending:
                raise InvalidStateException(
                    "Files attached to a decided leave request cannot be deleted."
                )

        await FileService.discard(db, record)
        await db.flush()
        logger.info("File %s deleted by %s", file_id, user.id)

    @staticmethod
    async def list_temporary(
        db: AsyncSession,
        uploader_id: uuid.UUID,
        limit: int = 50,
    ) -> Sequence[LeaveFile]:
        """The user's uploads not yet attached to any request, newest first."""
        result = await db.execute(
            select(LeaveFile)
            .where(
                LeaveFile.uploaded_by == uploader_id,
                LeaveFile.leave_id.is_(None),
            )
            .order_by(LeaveFile.uploaded_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    @staticmethod
    async def cleanup_orphaned(
        db: AsyncSession,
        *,
        older_than: Optional[timedelta] = None,
    ) -> int:
        """Delete unattached uploads past the grace period. Returns count removed."""
        if older_than is None:
            older_than = timedelta(minutes=settings.ORPHAN_GRACE_MINUTES)
        cutoff = datetime.now(timezone.utc) - older_than

        result = await db.execute(
            select(LeaveFile).where(
                LeaveFile.leave_id.is_(None),
                LeaveFile.uploaded_at < cutoff,
            )
        )
        orphans = result.scalars().all()
        for record in orphans:
            await FileService.discard(db, record)
        await db.flush()

        logger.info("Orphan cleanup removed %d file(s)", len(orphans))
        return len(orphans)
