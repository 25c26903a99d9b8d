import logging
from pathlib import Path
from typing import Callable, List

import requests

from .errors import ToolError
from .utils import ensure_output, run_tool

logger = logging.getLogger("vidworker.download")

Runner = Callable[[List[str]], str]

YTDLP_FORMAT = "bestvideo+bestaudio/best"


def download_video(url: str, out_path: Path,
                   ytdlp_bin: str = "yt-dlp", runner: Runner = run_tool) -> Path:
    """
    Fetch a remote video with yt-dlp, best video+audio merged into one mp4.
    """
    cmd = [
        ytdlp_bin,
        "-f", YTDLP_FORMAT,
        "--merge-output-format", "mp4",
        "-o", str(out_path),
        "--", url,
    ]
    logger.info(f"Downloading {url} -> {out_path}")
    runner(cmd)
    return ensure_output(out_path, "yt-dlp")


def download_direct(url: str, out_path: Path, timeout: int = 60) -> Path:
    """
    Plain HTTP(S) fetch for sources that are already a media file,
    written to disk chunk by chunk.
    """
    logger.info(f"Fetching {url} -> {out_path}")
    try:
        resp = requests.get(url, stream=True, timeout=timeout)
        with resp:
            resp.raise_for_status()
            with open(out_path, "wb") as fh:
                for chunk in resp.iter_content(chunk_size=1024 * 1024):
                    fh.write(chunk)
    except requests.RequestException as e:
        raise ToolError("http", f"Failed to fetch video: {e}")
    return ensure_output(out_path, "http")
