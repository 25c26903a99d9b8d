import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

from . import download_utils, ffmpeg_utils
from .config import Settings
from .errors import ValidationError
from .s3_utils import StorageGateway
from .utils import (
    ScratchFiles,
    audio_key,
    audio_path_for,
    check_upload_path,
    check_video_id,
    run_tool,
    thumbnail_key,
    video_key,
    video_path_for,
)

logger = logging.getLogger("vidworker.pipeline")

CONTENT_TYPES = {
    "video": "video/mp4",
    "audio": "audio/mpeg",
    "thumbnail": "image/jpeg",
}


class MediaPipeline:
    """
    download -> transcode -> upload -> cleanup, one linear function per endpoint.

    Every temp file goes through a ScratchFiles scope, so nothing a call
    created survives it, whether it returns or raises. The first failing
    step aborts the call; there are no partial results.
    """

    def __init__(self, settings: Settings, storage: StorageGateway,
                 runner: Callable[[List[str]], str] = run_tool):
        self.settings = settings
        self.storage = storage
        self.runner = runner
        self.bucket = settings.bucket

    def _scratch(self) -> ScratchFiles:
        return ScratchFiles(self.settings.tmp_dir)

    # =====================
    # STEPS
    # =====================

    def _fetch_stored_video(self, scratch: ScratchFiles, video_id: str) -> Path:
        data = self.storage.download(self.bucket, video_key(video_id))
        local = scratch.path(f"{video_id}.mp4")
        local.write_bytes(data)
        return local

    def _persist(self, local: Path, key: str, kind: str) -> Dict[str, str]:
        self.storage.upload_file(self.bucket, key, local, CONTENT_TYPES[kind])
        return {"path": key, "url": self.storage.public_url(self.bucket, key)}

    def _audio(self, scratch: ScratchFiles, video: Path, name: str, key: str) -> Dict[str, str]:
        audio = scratch.path(name)
        ffmpeg_utils.extract_audio(video, audio, ffmpeg_bin=self.settings.ffmpeg_bin, runner=self.runner)
        return self._persist(audio, key, "audio")

    def _thumbnail(self, scratch: ScratchFiles, video: Path, video_id: str) -> Dict[str, str]:
        thumb = scratch.path(f"{video_id}.jpg")
        ffmpeg_utils.extract_thumbnail(
            video, thumb,
            offset=self.settings.thumbnail_offset,
            ffmpeg_bin=self.settings.ffmpeg_bin,
            runner=self.runner,
        )
        return self._persist(thumb, thumbnail_key(video_id), "thumbnail")

    def _audio_file_from_url(self, scratch: ScratchFiles, media_url: str) -> Path:
        video = scratch.path(video_path_for(media_url))
        download_utils.download_direct(media_url, video, timeout=self.settings.http_timeout)
        audio = scratch.path(audio_path_for(media_url))
        return ffmpeg_utils.extract_audio(video, audio, ffmpeg_bin=self.settings.ffmpeg_bin, runner=self.runner)

    # =====================
    # OPERATIONS
    # =====================

    def download(self, video_url: str, video_id: str) -> Dict[str, Any]:
        if not video_url or not video_id:
            raise ValidationError("Missing video_url or video_id")
        check_video_id(video_id)

        logger.info(f"[download] START video_id={video_id} url={video_url}")
        with self._scratch() as scratch:
            local = scratch.path(video_path_for(video_url), sidecars=True)
            download_utils.download_video(
                video_url, local, ytdlp_bin=self.settings.ytdlp_bin, runner=self.runner
            )
            stored = self._persist(local, video_key(video_id), "video")

        logger.info(f"[download] DONE video_id={video_id} path={stored['path']}")
        return {"video_path": stored["path"]}

    def extract_audio(self, video_id: str) -> Dict[str, Any]:
        check_video_id(video_id)

        logger.info(f"[extract_audio] START video_id={video_id}")
        with self._scratch() as scratch:
            video = self._fetch_stored_video(scratch, video_id)
            audio = self._audio(scratch, video, f"{video_id}.mp3", audio_key(video_id))

        logger.info(f"[extract_audio] DONE video_id={video_id} path={audio['path']}")
        return {"audio_path": audio["path"], "audio_url": audio["url"], "video_id": video_id}

    def extract(self, video_id: str, audio: bool = False, thumbnail: bool = False) -> Dict[str, Any]:
        check_video_id(video_id)
        if not audio and not thumbnail:
            raise ValidationError("At least one of audio or thumbnail must be requested")

        logger.info(f"[extract] START video_id={video_id} audio={audio} thumbnail={thumbnail}")
        result: Dict[str, Any] = {"video_id": video_id}
        with self._scratch() as scratch:
            video = self._fetch_stored_video(scratch, video_id)
            if audio:
                a = self._audio(scratch, video, f"{video_id}.mp3", audio_key(video_id))
                result["audio_path"] = a["path"]
                result["audio_url"] = a["url"]
            if thumbnail:
                t = self._thumbnail(scratch, video, video_id)
                result["thumbnail_path"] = t["path"]
                result["thumbnail_url"] = t["url"]

        logger.info(f"[extract] DONE video_id={video_id} keys={sorted(result)}")
        return result

    def extract_audio_from_url(self, media_url: str, upload_path: str) -> Dict[str, Any]:
        """
        Direct-media variant: the source is a plain HTTP(S) file (e.g. a public
        bucket URL) rather than something yt-dlp has to resolve. Temp files are
        named by the URL's content hash; the mp3 goes to `upload_path`.
        """
        if not media_url:
            raise ValidationError("Missing media_url")
        key = check_upload_path(upload_path)

        logger.info(f"[extract_audio_from_url] START url={media_url} key={key}")
        with self._scratch() as scratch:
            audio = self._persist(self._audio_file_from_url(scratch, media_url), key, "audio")

        logger.info(f"[extract_audio_from_url] DONE key={key}")
        return {"audio_path": audio["path"], "audio_url": audio["url"], "media_url": media_url}

    def extract_audio_stream(self, media_url: str) -> Tuple[Path, ScratchFiles]:
        """
        Same extraction, nothing uploaded. Returns the local mp3 together with
        its still-open scratch scope; the caller cleans up once the file is sent.
        """
        if not media_url:
            raise ValidationError("Missing media_url")

        logger.info(f"[extract_audio_stream] START url={media_url}")
        scratch = self._scratch()
        try:
            audio = self._audio_file_from_url(scratch, media_url)
        except Exception:
            scratch.cleanup()
            raise
        logger.info(f"[extract_audio_stream] DONE url={media_url} file={audio}")
        return audio, scratch
