"""Attachment tests — upload limits, deletion rules, orphan cleanup."""

from __future__ import annotations

import io
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from starlette.datastructures import Headers

from leavedesk.common.constants import UserRole
from leavedesk.common.exceptions import InvalidStateException
from leavedesk.files.models import LeaveFile
from leavedesk.files.service import FileService
from leavedesk.leave.schemas import LeaveRequestCreate
from leavedesk.leave.service import LeaveService
from leavedesk.leave.workflow import Admin
from tests.conftest import auth_for

PDF = b"%PDF-1.4 sick note"


def _pdf(name: str = "note.pdf", content: bytes = PDF) -> tuple:
    return ("files", (name, content, "application/pdf"))


def _upload_file(name: str = "note.pdf", content: bytes = PDF) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": "application/pdf"}),
    )


async def _upload(client, user, *files) -> list[dict]:
    resp = await client.post(
        "/api/v1/files/upload", files=list(files or [_pdf()]), headers=auth_for(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ═════════════════════════════════════════════════════════════════════
# 1. Upload
# ═════════════════════════════════════════════════════════════════════


class TestUpload:

    async def test_upload_stores_file(self, client, employee, upload_dir):
        [stored] = await _upload(client, employee)

        assert stored["original_name"] == "note.pdf"
        assert stored["size"] == len(PDF)
        assert stored["leave_id"] is None
        assert stored["url"].startswith("/uploads/leave_attachments/")

        stored_name = stored["url"].rsplit("/", 1)[1]
        assert stored_name.endswith(".pdf")
        assert stored_name != "note.pdf"
        assert (upload_dir / stored_name).read_bytes() == PDF

    async def test_stored_file_is_served(self, client, employee):
        [stored] = await _upload(client, employee)
        resp = await client.get(stored["url"])
        assert resp.status_code == 200
        assert resp.content == PDF

    async def test_multiple_files(self, client, employee):
        stored = await _upload(
            client, employee,
            _pdf("a.pdf"),
            ("files", ("b.png", b"\x89PNG", "image/png")),
        )
        assert [s["original_name"] for s in stored] == ["a.pdf", "b.png"]

    async def test_disallowed_type(self, client, employee, upload_dir):
        resp = await client.post(
            "/api/v1/files/upload",
            files=[("files", ("run.exe", b"MZ", "application/x-msdownload"))],
            headers=auth_for(employee),
        )
        assert resp.status_code == 422
        assert resp.json()["errors"]["files"] == [
            "File type 'application/x-msdownload' is not allowed (run.exe).",
        ]
        assert not upload_dir.exists() or not any(upload_dir.iterdir())

    async def test_too_large(self, client, employee):
        big = b"0" * (10 * 1024 * 1024 + 1)
        resp = await client.post(
            "/api/v1/files/upload", files=[_pdf("scan.pdf", big)], headers=auth_for(employee),
        )
        assert resp.status_code == 422
        assert resp.json()["errors"]["files"] == [
            "scan.pdf is too large. Maximum size is 10 MB.",
        ]

    async def test_more_than_five_files(self, client, employee):
        resp = await client.post(
            "/api/v1/files/upload",
            files=[_pdf(f"{i}.pdf") for i in range(6)],
            headers=auth_for(employee),
        )
        assert resp.status_code == 422
        assert resp.json()["errors"]["files"] == ["You can upload a maximum of 5 files"]

    async def test_one_bad_file_rejects_batch(self, client, employee, db):
        resp = await client.post(
            "/api/v1/files/upload",
            files=[_pdf(), ("files", ("x.zip", b"PK", "application/zip"))],
            headers=auth_for(employee),
        )
        assert resp.status_code == 422
        rows = (await db.execute(select(LeaveFile))).scalars().all()
        assert rows == []

    async def test_failed_flush_removes_written_bytes(self, db, employee, upload_dir, monkeypatch):
        async def _broken_flush(*args, **kwargs):
            raise IntegrityError("INSERT INTO leave_files", {}, Exception("disk full"))

        monkeypatch.setattr(db, "flush", _broken_flush)
        with pytest.raises(IntegrityError):
            await FileService.upload_files(db, employee.id, [_upload_file()])
        assert list(upload_dir.iterdir()) == []

    async def test_rolled_back_upload_removes_bytes(self, db, employee, upload_dir):
        [record] = await FileService.upload_files(db, employee.id, [_upload_file()])
        stored_name = record.stored_name
        assert (upload_dir / stored_name).exists()

        await db.rollback()
        assert not (upload_dir / stored_name).exists()

    async def test_committed_upload_survives_later_rollback(self, db, employee, upload_dir):
        [record] = await FileService.upload_files(db, employee.id, [_upload_file()])
        stored_name = record.stored_name
        await db.commit()

        await db.rollback()
        assert (upload_dir / stored_name).exists()


# ═════════════════════════════════════════════════════════════════════
# 2. Listing and deletion
# ═════════════════════════════════════════════════════════════════════


class TestTemporaryAndDelete:

    async def test_temporary_lists_own_unattached(self, client, employee, make_user):
        await _upload(client, employee)
        await _upload(client, await make_user())

        resp = await client.get("/api/v1/files/temporary", headers=auth_for(employee))
        assert resp.status_code == 200
        assert len(resp.json()) == 1

    async def test_attached_file_leaves_temporary_list(self, client, employee):
        [stored] = await _upload(client, employee)
        start = date.today() + timedelta(days=14)
        resp = await client.post(
            "/api/v1/leaves",
            json={
                "leave_type": "SickLeave",
                "start_date": start.isoformat(),
                "end_date": start.isoformat(),
                "reason": "Specialist appointment",
                "file_ids": [stored["id"]],
            },
            headers=auth_for(employee),
        )
        assert resp.status_code == 201
        assert [a["id"] for a in resp.json()["attachments"]] == [stored["id"]]

        temp = await client.get("/api/v1/files/temporary", headers=auth_for(employee))
        assert temp.json() == []

    async def test_delete_own_file(self, client, employee, upload_dir):
        [stored] = await _upload(client, employee)
        resp = await client.delete(f"/api/v1/files/{stored['id']}", headers=auth_for(employee))
        assert resp.status_code == 200
        assert not (upload_dir / stored["url"].rsplit("/", 1)[1]).exists()

    async def test_cannot_delete_someone_elses(self, client, employee, make_user):
        [stored] = await _upload(client, employee)
        stranger = await make_user()
        resp = await client.delete(f"/api/v1/files/{stored['id']}", headers=auth_for(stranger))
        assert resp.status_code == 403

    async def test_file_on_decided_request_is_kept(self, db, make_user):
        owner = await make_user()
        admin = await make_user(role=UserRole.admin)
        record = LeaveFile(
            uploaded_by=owner.id, original_name="n.pdf", stored_name="n.pdf",
            url="/uploads/leave_attachments/n.pdf", size=3, content_type="application/pdf",
        )
        db.add(record)
        await db.flush()
        leave = await LeaveService.submit_leave(
            db, owner.id,
            LeaveRequestCreate(
                leave_type="SickLeave",
                start_date=date(2024, 6, 3),
                end_date=date(2024, 6, 3),
                reason="Dentist, wisdom tooth",
                file_ids=[record.id],
            ),
            today=date(2024, 6, 1),
        )
        await LeaveService.approve_leave(db, leave.id, Admin(user_id=admin.id))

        with pytest.raises(InvalidStateException):
            await FileService.delete_file(db, record.id, owner)


# ═════════════════════════════════════════════════════════════════════
# 3. Orphan cleanup
# ═════════════════════════════════════════════════════════════════════


class TestOrphanCleanup:

    async def test_removes_only_stale_unattached(self, db, make_user, upload_dir):
        owner = await make_user()
        upload_dir.mkdir(parents=True, exist_ok=True)
        (upload_dir / "old.pdf").write_bytes(PDF)
        (upload_dir / "new.pdf").write_bytes(PDF)
        db.add_all([
            LeaveFile(
                uploaded_by=owner.id, original_name="old.pdf", stored_name="old.pdf",
                url="/uploads/leave_attachments/old.pdf", size=len(PDF),
                content_type="application/pdf",
                uploaded_at=datetime.now(timezone.utc) - timedelta(hours=3),
            ),
            LeaveFile(
                uploaded_by=owner.id, original_name="new.pdf", stored_name="new.pdf",
                url="/uploads/leave_attachments/new.pdf", size=len(PDF),
                content_type="application/pdf",
                uploaded_at=datetime.now(timezone.utc),
            ),
        ])
        await db.flush()

        removed = await FileService.cleanup_orphaned(db)
        await db.commit()

        assert removed == 1
        assert not (upload_dir / "old.pdf").exists()
        assert (upload_dir / "new.pdf").exists()
        names = (await db.execute(select(LeaveFile.stored_name))).scalars().all()
        assert names == ["new.pdf"]

    async def test_endpoint_requires_reviewer(self, client, employee, admin):
        denied = await client.post("/api/v1/files/cleanup-orphaned", headers=auth_for(employee))
        assert denied.status_code == 403

        resp = await client.post("/api/v1/files/cleanup-orphaned", headers=auth_for(admin))
        assert resp.status_code == 200
        assert resp.json() == {"removed": 0}
