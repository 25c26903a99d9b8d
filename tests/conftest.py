from pathlib import Path
from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from vidworker.config import Settings
from vidworker.errors import NotFoundError, ToolError
from vidworker.main import create_app
from vidworker.pipeline import MediaPipeline
from vidworker.s3_utils import StorageGateway

PUBLIC_BASE = "https://proj.supabase.co/storage/v1/object/public"


class FakeStorage(StorageGateway):
    """In-memory bucket; keeps public_url from the real gateway."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.content_types: Dict[Tuple[str, str], str] = {}
        self.downloads: List[str] = []
        self.uploads: List[str] = []

    def put(self, bucket: str, key: str, data: bytes = b"video-bytes") -> None:
        self.objects[(bucket, key)] = data

    def download(self, bucket, key, privileged=True):
        self.downloads.append(key)
        if (bucket, key) not in self.objects:
            raise NotFoundError(f"Video not found in storage: {key}")
        return self.objects[(bucket, key)]

    def exists(self, bucket, key, privileged=True):
        return (bucket, key) in self.objects

    def upload(self, bucket, key, data, content_type, overwrite=True, privileged=True):
        self.uploads.append(key)
        self.objects[(bucket, key)] = data
        self.content_types[(bucket, key)] = content_type

    def upload_file(self, bucket, key, local_path, content_type, overwrite=True, privileged=True):
        self.upload(bucket, key, Path(local_path).read_bytes(), content_type, overwrite, privileged)


class FakeRunner:
    """
    Stands in for run_tool: records argv and writes the file the tool
    would have produced. Tools listed in `fail` raise ToolError instead.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.fail: Dict[str, str] = {}

    def __call__(self, cmd: List[str]) -> str:
        self.calls.append(list(cmd))
        tool = Path(cmd[0]).name
        out = Path(cmd[cmd.index("-o") + 1]) if "-o" in cmd else Path(cmd[-1])
        if tool in self.fail:
            if tool == "yt-dlp":
                # yt-dlp leaves fragments behind when it dies mid-download
                out.with_name(out.name + ".part").write_bytes(b"partial")
                out.with_name(out.stem + ".f137.mp4").write_bytes(b"partial")
            raise ToolError(tool, self.fail[tool], returncode=1)
        out.write_bytes(f"{tool}-output".encode())
        return ""

    def tools(self) -> List[str]:
        return [Path(c[0]).name for c in self.calls]


def leftover_files(root: Path) -> List[Path]:
    return [p for p in root.rglob("*") if p.is_file()]


@pytest.fixture
def tmp_dir(tmp_path) -> Path:
    d = tmp_path / "scratch"
    d.mkdir()
    return d


@pytest.fixture
def settings(tmp_dir) -> Settings:
    return Settings(
        supabase_url="https://proj.supabase.co",
        project_ref="proj",
        public_url_base=PUBLIC_BASE,
        bucket="tmp_videos",
        tmp_dir=str(tmp_dir),
    )


@pytest.fixture
def storage(settings) -> FakeStorage:
    return FakeStorage(settings)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def pipeline(settings, storage, runner) -> MediaPipeline:
    return MediaPipeline(settings, storage, runner=runner)


@pytest.fixture
def client(settings, storage, runner) -> TestClient:
    return TestClient(create_app(settings, storage=storage, runner=runner))
