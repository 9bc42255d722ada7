# routers/files.py - Project file uploads, listings and tracked client downloads
import os
import uuid
import logging
import mimetypes
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Form, Request, UploadFile, File as FastAPIFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import FreelancerPrincipal, ClientPrincipal, get_current_freelancer, get_current_client
from database import get_db_session
from errors import NotFound, PayloadTooLarge, ValidationFailure
from models import File, FileDownload, Update
from ownership import EntityKind, authorize
from tracking import TrackingRecorder, get_tracker

router = APIRouter(prefix="/api", tags=["Files"])
logger = logging.getLogger("handoff.files")

# Storage directory (configurable via env)
UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "/data/uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
CHUNK_SIZE = 1024 * 1024


# --- Schemas ---

class FileOut(BaseModel):
    id: str
    project_id: str
    update_id: Optional[str] = None
    name: str
    file_size: int
    mime_type: Optional[str] = None
    uploaded_by: str
    download_count: int = 0
    last_downloaded_at: Optional[str] = None
    created_at: Optional[str] = None


# --- Helpers ---

def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _file_to_out(f: File, download_count: int = 0, last_downloaded=None) -> FileOut:
    return FileOut(
        id=f.id,
        project_id=f.project_id,
        update_id=f.update_id,
        name=f.name,
        file_size=f.file_size or 0,
        mime_type=f.mime_type,
        uploaded_by=f.uploaded_by,
        download_count=download_count,
        last_downloaded_at=_ts(last_downloaded),
        created_at=_ts(f.created_at),
    )


async def _store_upload(upload: UploadFile, project_id: str) -> tuple:
    """Stream an upload to disk under a generated name. Returns (path, size)"""
    directory = os.path.join(UPLOAD_ROOT, project_id)
    await run_in_threadpool(os.makedirs, directory, exist_ok=True)
    path = os.path.join(directory, uuid.uuid4().hex)

    size = 0
    out = await run_in_threadpool(open, path, "wb")
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > MAX_UPLOAD_BYTES:
                break
            await run_in_threadpool(out.write, chunk)
    finally:
        await run_in_threadpool(out.close)

    if size > MAX_UPLOAD_BYTES:
        await _discard(path)
        raise PayloadTooLarge(f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MiB limit")
    return path, size


async def _discard(path: str) -> None:
    try:
        await run_in_threadpool(os.remove, path)
    except FileNotFoundError:
        pass


# --- Endpoints ---

@router.post("/projects/{project_id}/files", response_model=FileOut)
async def upload_file(
    project_id: str,
    file: Optional[UploadFile] = FastAPIFile(default=None),
    update_id: Optional[str] = Form(default=None),
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Upload a single file to a project, optionally attached to an update"""
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    if file is None or not file.filename:
        raise ValidationFailure("No file")

    if update_id:
        stmt = select(Update.id).where(Update.id == update_id, Update.project_id == project.id)
        if not (await db.execute(stmt)).scalar_one_or_none():
            raise ValidationFailure("update_id does not belong to this project")

    path, size = await _store_upload(file, project.id)
    mime_type = file.content_type or mimetypes.guess_type(file.filename)[0]

    record = File(
        project_id=project.id,
        update_id=update_id or None,
        name=file.filename,
        file_path=path,
        file_size=size,
        mime_type=mime_type,
        uploaded_by=user.id,
    )
    db.add(record)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        await _discard(path)
        logger.error(f"Could not save metadata for upload to project {project.id}; removed {path}")
        raise
    await db.refresh(record)

    logger.info(f"Stored {record.name} ({size} bytes) for project {project.id}")
    return _file_to_out(record)


@router.get("/projects/{project_id}/files", response_model=List[FileOut])
async def list_files(
    project_id: str,
    user: FreelancerPrincipal = Depends(get_current_freelancer),
    db: AsyncSession = Depends(get_db_session),
):
    """Project files with download counts"""
    project = await authorize(db, user, EntityKind.PROJECT, project_id)

    stmt = (
        select(File, func.count(FileDownload.id), func.max(FileDownload.downloaded_at))
        .outerjoin(FileDownload, FileDownload.file_id == File.id)
        .where(File.project_id == project.id)
        .group_by(File.id)
        .order_by(File.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_file_to_out(f, count or 0, last) for f, count, last in result.all()]


@router.get("/files/{file_id}/download")
async def download_file(
    file_id: str,
    request: Request,
    client: ClientPrincipal = Depends(get_current_client),
    db: AsyncSession = Depends(get_db_session),
    tracker: TrackingRecorder = Depends(get_tracker),
):
    """Stream a file to its client; the download is recorded before any bytes are sent"""
    record = await authorize(db, client, EntityKind.FILE, file_id)

    if not os.path.isfile(record.file_path):
        logger.error(f"File {record.id} is missing from storage at {record.file_path}")
        raise NotFound("File not found")

    ip_address = request.client.host if request.client else None
    await tracker.download(record.id, client.id, ip_address)

    return FileResponse(
        record.file_path,
        filename=record.name,
        media_type=record.mime_type or "application/octet-stream",
    )
