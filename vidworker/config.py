# config.py: settings read from env once at startup
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv


def _env_str(k: str, d: str = "") -> str:
    v = (os.getenv(k) or "").split("#")[0].strip()
    return v or d


def _env_int(k: str, d: int) -> int:
    v = _env_str(k)
    try:
        return int(v) if v else d
    except ValueError:
        return d


def _env_opt(k: str) -> Optional[str]:
    return _env_str(k) or None


def _project_ref(supabase_url: str) -> str:
    # https://<ref>.supabase.co -> <ref>
    host = urlparse(supabase_url).hostname or ""
    return host.split(".")[0]


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    anon_key: Optional[str] = None
    service_role_key: Optional[str] = None
    project_ref: str = ""
    region: str = "us-east-1"
    endpoint_url: str = ""
    public_url_base: str = ""
    bucket: str = "tmp_videos"

    tmp_dir: str = "/tmp"
    ytdlp_bin: str = "yt-dlp"
    ffmpeg_bin: str = "ffmpeg"
    thumbnail_offset: str = "00:00:00"
    http_timeout: int = 60

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()

        supabase_url = _env_str("SUPABASE_URL").rstrip("/")
        endpoint = _env_str("STORAGE_ENDPOINT_URL")
        if not endpoint and supabase_url:
            endpoint = f"{supabase_url}/storage/v1/s3"
        public_base = _env_str("STORAGE_PUBLIC_URL")
        if not public_base and supabase_url:
            public_base = f"{supabase_url}/storage/v1/object/public"

        return cls(
            supabase_url=supabase_url,
            anon_key=_env_opt("SUPABASE_ANON_KEY"),
            service_role_key=_env_opt("SUPABASE_SERVICE_ROLE_KEY"),
            project_ref=_env_str("SUPABASE_PROJECT_REF") or _project_ref(supabase_url),
            region=_env_str("SUPABASE_REGION", "us-east-1"),
            endpoint_url=endpoint.rstrip("/"),
            public_url_base=public_base.rstrip("/"),
            bucket=_env_str("STORAGE_BUCKET", "tmp_videos"),
            tmp_dir=_env_str("TMP_DIR", "/tmp"),
            ytdlp_bin=_env_str("YTDLP_BIN", "yt-dlp"),
            ffmpeg_bin=_env_str("FFMPEG_BIN", "ffmpeg"),
            thumbnail_offset=_env_str("THUMBNAIL_OFFSET", "00:00:00"),
            http_timeout=_env_int("HTTP_TIMEOUT", 60),
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )
