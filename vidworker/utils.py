import os
import re
import hashlib
import logging
import subprocess
from pathlib import Path
from typing import List, Tuple

from .errors import ToolError, ValidationError

logger = logging.getLogger("vidworker.utils")

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$")


# -------------------------------------------------------------------
# Storage keys
# -------------------------------------------------------------------

def media_hash(media_url: str) -> str:
    return hashlib.sha256(media_url.encode("utf-8")).hexdigest()


def video_path_for(media_url: str) -> str:
    return f"videos/{media_hash(media_url)}.mp4"


def audio_path_for(media_url: str) -> str:
    return f"audios/{media_hash(media_url)}.mp3"


def video_key(video_id: str) -> str:
    return f"videos/{video_id}.mp4"


def audio_key(video_id: str) -> str:
    return f"audios/{video_id}.mp3"


def thumbnail_key(video_id: str) -> str:
    return f"thumbnails/{video_id}.jpg"


def check_video_id(video_id: str) -> str:
    """
    Video ids end up both in bucket keys and in local file names,
    so only a plain token is accepted.
    """
    if not video_id:
        raise ValidationError("Missing video_id")
    if ".." in video_id or not _VIDEO_ID_RE.match(video_id):
        raise ValidationError(f"Invalid video_id: {video_id!r}")
    return video_id


def check_upload_path(upload_path: str) -> str:
    key = upload_path.strip().lstrip("/")
    if not key or key.endswith("/") or ".." in key.split("/"):
        raise ValidationError(f"Invalid upload_path: {upload_path!r}")
    return key


# -------------------------------------------------------------------
# Scratch files
# -------------------------------------------------------------------

class ScratchFiles:
    """
    Temp files owned by one request. Everything handed out by path()
    is deleted on cleanup(), which never raises.
    """

    def __init__(self, root: str):
        self.root = Path(root)
        self._paths: List[Tuple[Path, bool]] = []

    def path(self, name: str, sidecars: bool = False) -> Path:
        p = self.root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        self._paths.append((p, sidecars))
        return p

    def cleanup(self) -> None:
        for p, sidecars in reversed(self._paths):
            targets = [p]
            if sidecars:
                # yt-dlp leaves <name>.part / <name>.ytdl / <stem>.f137.mp4 behind on failure
                targets += list(p.parent.glob(f"{p.name}.*"))
                targets += list(p.parent.glob(f"{p.stem}.f*.*"))
            for t in targets:
                _remove_quietly(t)
        self._paths.clear()

    def __enter__(self) -> "ScratchFiles":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()


def _remove_quietly(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temp file {path}: {e}")


# -------------------------------------------------------------------
# External tools
# -------------------------------------------------------------------

def run_tool(cmd: List[str]) -> str:
    """
    Run an argv list (never a shell string) and raise ToolError on a non-zero exit.
    Returns stdout.
    """
    tool = os.path.basename(cmd[0])
    logger.debug(f"Running: {cmd}")
    try:
        p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                           text=True, errors="replace")
    except FileNotFoundError:
        raise ToolError(tool, f"binary not found: {cmd[0]}")
    if p.returncode != 0:
        msg = (p.stderr or p.stdout or "").strip()
        raise ToolError(tool, f"exit code {p.returncode}: {msg}" if msg else f"exit code {p.returncode}",
                        returncode=p.returncode)
    return p.stdout


def ensure_output(path: Path, tool: str) -> Path:
    if not path.exists() or path.stat().st_size == 0:
        raise ToolError(tool, f"no output written to {path}")
    return path
