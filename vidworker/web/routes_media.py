# web/routes_media.py
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from ..errors import MediaError
from ..pipeline import MediaPipeline
from ..s3_utils import StorageGateway

logger = logging.getLogger("vidworker.web")

router = APIRouter()


class DownloadRequest(BaseModel):
    video_url: str = Field(..., min_length=1, description="Any URL yt-dlp can resolve")
    video_id: str = Field(..., min_length=1)


class ExtractRequest(BaseModel):
    video_id: str = Field(..., min_length=1, description="Stored as videos/{video_id}.mp4")


class ExtractFromUrlRequest(BaseModel):
    media_url: str = Field(..., min_length=1, description="Direct HTTP/S URL of a video file")
    upload_path: Optional[str] = Field(default=None, description="Bucket key for the mp3; omit to get the mp3 back")


def get_pipeline(request: Request) -> MediaPipeline:
    return request.app.state.pipeline


def get_storage(request: Request) -> StorageGateway:
    return request.app.state.storage


def ok(data: Dict[str, Any], message: str) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None, "message": message}


def fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "data": None, "error": error})


def _error_response(step: str, e: Exception) -> JSONResponse:
    if isinstance(e, MediaError):
        logger.warning(f"[{step}] {type(e).__name__} ({e.status_code}): {e.message}")
        return fail(e.status_code, e.message)
    logger.exception(f"[{step}] unexpected error: {e}")
    return fail(500, f"{type(e).__name__}: {e}")


def _respond(step: str, fn: Callable[..., Dict[str, Any]], message: str, *args, **kwargs):
    try:
        return ok(fn(*args, **kwargs), message)
    except Exception as e:
        return _error_response(step, e)


@router.post("/download")
def download(body: DownloadRequest, pipeline: MediaPipeline = Depends(get_pipeline)):
    return _respond("download", pipeline.download, "Video downloaded and uploaded successfully",
                    body.video_url, body.video_id)


@router.post("/extract-audio")
def extract_audio(body: ExtractRequest, pipeline: MediaPipeline = Depends(get_pipeline)):
    return _respond("extract_audio", pipeline.extract_audio, "Audio extracted and uploaded",
                    body.video_id)


@router.post("/extract")
def extract(
    body: ExtractRequest,
    audio: bool = Query(default=False),
    thumbnail: bool = Query(default=False),
    pipeline: MediaPipeline = Depends(get_pipeline),
):
    """
    POST /extract?audio=true&thumbnail=true  {"video_id": "abc"}
    """
    return _respond("extract", pipeline.extract, "Media extracted and uploaded",
                    body.video_id, audio=audio, thumbnail=thumbnail)


@router.post("/extract-audio-from-url")
def extract_audio_from_url(body: ExtractFromUrlRequest, pipeline: MediaPipeline = Depends(get_pipeline)):
    """
    With upload_path: mp3 stored in the bucket, JSON envelope back.
    Without: the mp3 itself comes back as audio/mpeg, scratch removed after sending.
    """
    if body.upload_path:
        return _respond("extract_audio_from_url", pipeline.extract_audio_from_url, "Audio extracted and uploaded",
                        body.media_url, body.upload_path)
    try:
        audio, scratch = pipeline.extract_audio_stream(body.media_url)
    except Exception as e:
        return _error_response("extract_audio_stream", e)
    return FileResponse(audio, media_type="audio/mpeg", filename=audio.name,
                        background=BackgroundTask(scratch.cleanup))


@router.get("/storage/ping")
def storage_ping(request: Request, storage: StorageGateway = Depends(get_storage)):
    bucket = request.app.state.settings.bucket
    return _respond("storage_ping", storage.ping, "Storage connection successful", bucket)
