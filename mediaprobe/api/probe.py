"""Probe API endpoints: file selection, batch state and exports"""

import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from mediaprobe.delivery import DeliveryResult
from mediaprobe.extraction import MediaProbeError, ValidationError
from mediaprobe.media.file import LocalMediaFile
from mediaprobe.service import MetadataService, open_paths

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/probe", tags=["Probe"])


class SelectRequest(BaseModel):
    """Files or directories to process as one batch."""
    paths: list[str] = Field(..., min_length=1)


class SubtitleExportRequest(BaseModel):
    path: str
    stream_index: int = Field(..., ge=0)
    language: Optional[str] = None
    codec: Optional[str] = None
    forced: bool = False


class StreamExportRequest(BaseModel):
    path: str
    stream_index: int = Field(..., ge=0)
    stream_type: str = Field(..., pattern="^(video|audio)$")
    codec: Optional[str] = None


def get_service(request: Request) -> MetadataService:
    """Service instance created by the application lifespan."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not started")
    return service


def _open_file(path: str) -> LocalMediaFile:
    if not Path(path).is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"File not found: {path}")
    return LocalMediaFile(path)


def _delivery_to_response(result: DeliveryResult) -> dict[str, Any]:
    return {
        "filename": result.filename,
        "location": result.location,
        "mode": result.mode.value,
        "size": result.size,
        "chunks": result.chunks,
    }


def _raise_for(error: MediaProbeError) -> NoReturn:
    code = status.HTTP_400_BAD_REQUEST if isinstance(error, ValidationError) else status.HTTP_422_UNPROCESSABLE_ENTITY
    raise HTTPException(status_code=code, detail=error.user_message)


@router.get("/state")
async def get_state(service: MetadataService = Depends(get_service)) -> dict[str, Any]:
    """Current metadata, progress, error and batch items."""
    return service.snapshot()


@router.post("/select")
async def select_files(
    body: SelectRequest,
    service: MetadataService = Depends(get_service),
) -> dict[str, Any]:
    """Replace the batch with the given files. Directories are scanned recursively."""
    files = open_paths(body.paths)
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No media files found")

    if len(files) == 1:
        await service.select_file(files[0])
    else:
        await service.select_files(files)
    logger.info(f"Selected {len(files)} file(s) via API")
    return service.snapshot()


@router.post("/clear")
async def clear_all(service: MetadataService = Depends(get_service)) -> dict[str, Any]:
    service.clear_all()
    return service.snapshot()


@router.post("/error/hide")
async def hide_error(service: MetadataService = Depends(get_service)) -> dict[str, Any]:
    service.hide_error()
    return service.snapshot()


@router.post("/export/subtitle")
async def export_subtitle(
    body: SubtitleExportRequest,
    service: MetadataService = Depends(get_service),
) -> dict[str, Any]:
    """Extract one subtitle track into the output directory."""
    file = _open_file(body.path)
    try:
        result = await service.export_subtitle(
            file, body.stream_index, body.language, body.codec, body.forced
        )
    except MediaProbeError as e:
        _raise_for(e)
    return _delivery_to_response(result)


@router.post("/export/stream")
async def export_stream(
    body: StreamExportRequest,
    service: MetadataService = Depends(get_service),
) -> dict[str, Any]:
    """Extract one audio or video stream into the output directory."""
    file = _open_file(body.path)
    try:
        result = await service.export_stream(file, body.stream_index, body.stream_type, body.codec)
    except MediaProbeError as e:
        _raise_for(e)
    return _delivery_to_response(result)
