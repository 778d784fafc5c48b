"""HTTP routes for uploading, fetching and counting files."""

from __future__ import annotations

import base64
import binascii
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile

from earlbox.exceptions import PayloadTooLarge
from earlbox.models.file_record import FileRecord
from earlbox.schemas import Base64UploadIn, FileDownloadOut, FileOut, FileStatsOut
from earlbox.services import Services

router = APIRouter(prefix="/api")


def get_services(request: Request) -> Services:
    """Dependency returning the services built at startup."""
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="File not found")


async def _ingest(services: Services, name: str, content_type: str, size: int, data: bytes) -> FileRecord:
    record = await services.ingestion.ingest(name, content_type, size, data)
    services.stats.invalidate()
    return record


@router.post("/files", response_model=FileOut, status_code=201)
async def upload_file(
    file: Annotated[UploadFile, File(description="Image or video to share")],
    services: ServicesDep,
) -> FileRecord:
    """Upload a file as multipart form data."""
    limit = services.ingestion.max_upload_bytes
    # Refuse oversized bodies before buffering them
    if file.size is not None and file.size > limit:
        raise PayloadTooLarge(file.size, limit)

    data = await file.read()
    size = file.size if file.size is not None else len(data)
    return await _ingest(services, file.filename or "", file.content_type or "", size, data)


@router.post("/files/base64", response_model=FileOut, status_code=201)
async def upload_file_base64(body: Base64UploadIn, services: ServicesDep) -> FileRecord:
    """Upload a file as JSON with base64 content."""
    try:
        data = base64.b64decode(body.file_data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=422, detail="file_data is not valid base64") from None
    return await _ingest(services, body.original_name, body.content_type, body.size_bytes, data)


@router.get("/files/{public_token}", response_model=FileOut)
async def get_file(public_token: str, services: ServicesDep) -> FileRecord:
    """Get file metadata by public token."""
    record = await services.retrieval.get_metadata(public_token)
    if record is None:
        raise _not_found()
    return record


@router.get("/files/{public_token}/content")
async def get_file_content(public_token: str, services: ServicesDep) -> Response:
    """Serve the raw bytes of a file."""
    found = await services.retrieval.get_content(public_token)
    if found is None:
        raise _not_found()
    record, data = found
    return Response(
        content=data,
        media_type=record.content_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(record.original_name)}"},
    )


@router.get("/files/{public_token}/download", response_model=FileDownloadOut)
async def download_file(public_token: str, services: ServicesDep) -> FileDownloadOut:
    """Get metadata and base64 content in one JSON document."""
    found = await services.retrieval.get_content(public_token)
    if found is None:
        raise _not_found()
    record, data = found
    return FileDownloadOut(
        **FileOut.model_validate(record).model_dump(),
        file_data=base64.b64encode(data).decode("ascii"),
    )


@router.get("/stats", response_model=FileStatsOut)
async def get_stats(services: ServicesDep) -> FileStatsOut:
    """File count and total stored size."""
    stats = await services.stats.get_stats()
    return FileStatsOut(total_files=stats.total_files, total_size_bytes=stats.total_size_bytes)
