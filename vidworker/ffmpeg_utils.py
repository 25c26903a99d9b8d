import logging
from pathlib import Path
from typing import Callable, List

from .utils import ensure_output, run_tool

logger = logging.getLogger("vidworker.ffmpeg")

Runner = Callable[[List[str]], str]


def extract_audio(video_path: Path, audio_path: Path,
                  ffmpeg_bin: str = "ffmpeg", runner: Runner = run_tool) -> Path:
    """
    Audio-only mp3 (libmp3lame, VBR quality 2).
    """
    cmd = [
        ffmpeg_bin, "-y",
        "-i", str(video_path),
        "-vn",
        "-acodec", "libmp3lame",
        "-q:a", "2",
        str(audio_path),
    ]
    logger.info(f"Extracting audio {video_path} -> {audio_path}")
    runner(cmd)
    return ensure_output(audio_path, "ffmpeg")


def extract_thumbnail(video_path: Path, thumbnail_path: Path, offset: str = "00:00:00",
                      ffmpeg_bin: str = "ffmpeg", runner: Runner = run_tool) -> Path:
    """
    Single jpeg frame taken at `offset` into the video.
    """
    cmd = [
        ffmpeg_bin, "-y",
        "-i", str(video_path),
        "-ss", offset,
        "-vframes", "1",
        "-q:v", "2",
        str(thumbnail_path),
    ]
    logger.info(f"Extracting thumbnail {video_path} @ {offset} -> {thumbnail_path}")
    runner(cmd)
    return ensure_output(thumbnail_path, "ffmpeg")
