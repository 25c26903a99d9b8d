import sys

import pytest

from vidworker.errors import ToolError, ValidationError
from vidworker.utils import (
    ScratchFiles,
    audio_key,
    audio_path_for,
    check_upload_path,
    check_video_id,
    ensure_output,
    media_hash,
    run_tool,
    thumbnail_key,
    video_key,
    video_path_for,
)


def test_media_hash_is_sha256_hex():
    assert media_hash("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_media_hash_is_deterministic():
    url = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert media_hash(url) == media_hash(url)
    assert media_hash(url) != media_hash(url + "&t=1")
    assert media_hash(url) == media_hash(url).lower()


def test_hash_paths():
    h = media_hash("https://example.com/a.mp4")
    assert video_path_for("https://example.com/a.mp4") == f"videos/{h}.mp4"
    assert audio_path_for("https://example.com/a.mp4") == f"audios/{h}.mp3"


def test_id_keys():
    assert video_key("abc") == "videos/abc.mp4"
    assert audio_key("abc") == "audios/abc.mp3"
    assert thumbnail_key("abc") == "thumbnails/abc.jpg"


@pytest.mark.parametrize("video_id", ["abc", "A-1_b.2", "123e4567-e89b-12d3-a456-426614174000"])
def test_check_video_id_accepts_plain_tokens(video_id):
    assert check_video_id(video_id) == video_id


@pytest.mark.parametrize("video_id", ["", "../etc/passwd", "a/b", ".hidden", "a..b", "x y", "a;rm -rf"])
def test_check_video_id_rejects(video_id):
    with pytest.raises(ValidationError):
        check_video_id(video_id)


def test_check_upload_path():
    assert check_upload_path("/audios/clip.mp3") == "audios/clip.mp3"
    for bad in ["", "   ", "audios/", "../x.mp3", "a/../../b.mp3"]:
        with pytest.raises(ValidationError):
            check_upload_path(bad)


def test_scratch_files_removed_on_exit(tmp_path):
    with ScratchFiles(str(tmp_path)) as scratch:
        a = scratch.path("abc.mp4")
        b = scratch.path("audios/abc.mp3")
        a.write_bytes(b"1")
        b.write_bytes(b"2")
        scratch.path("never-written.jpg")
    assert not a.exists()
    assert not b.exists()
    assert b.parent.is_dir()


def test_scratch_files_removed_when_body_raises(tmp_path):
    with pytest.raises(RuntimeError):
        with ScratchFiles(str(tmp_path)) as scratch:
            p = scratch.path("abc.mp4")
            p.write_bytes(b"1")
            raise RuntimeError("boom")
    assert not p.exists()


def test_scratch_sidecars(tmp_path):
    other = tmp_path / "videos" / "other.mp4"
    with ScratchFiles(str(tmp_path)) as scratch:
        p = scratch.path("videos/h.mp4", sidecars=True)
        (tmp_path / "videos" / "h.mp4.part").write_bytes(b"x")
        (tmp_path / "videos" / "h.f140.m4a").write_bytes(b"x")
        other.write_bytes(b"keep")
    assert sorted(f.name for f in (tmp_path / "videos").iterdir()) == ["other.mp4"]
    assert not p.exists()


def test_scratch_cleanup_tolerates_already_removed(tmp_path):
    scratch = ScratchFiles(str(tmp_path))
    p = scratch.path("abc.mp4")
    p.write_bytes(b"1")
    p.unlink()
    scratch.cleanup()
    scratch.cleanup()


def test_run_tool_returns_stdout():
    out = run_tool([sys.executable, "-c", "print('hello')"])
    assert out.strip() == "hello"


def test_run_tool_raises_with_stderr():
    with pytest.raises(ToolError) as ei:
        run_tool([sys.executable, "-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"])
    assert ei.value.returncode == 3
    assert "bad input" in ei.value.message
    assert ei.value.status_code == 500


def test_run_tool_tolerates_non_utf8_output():
    # ffmpeg echoes latin-1 metadata tags verbatim
    code = r"import sys; sys.stderr.buffer.write(b'title: caf\xe9\n'); sys.stdout.buffer.write(b'ok \xff')"
    out = run_tool([sys.executable, "-c", code])
    assert out == "ok \ufffd"


def test_run_tool_failure_with_non_utf8_stderr():
    code = r"import sys; sys.stderr.buffer.write(b'caf\xe9'); sys.exit(1)"
    with pytest.raises(ToolError) as ei:
        run_tool([sys.executable, "-c", code])
    assert "caf\ufffd" in ei.value.message


def test_run_tool_missing_binary():
    with pytest.raises(ToolError) as ei:
        run_tool(["/nonexistent/ffmpeg", "-version"])
    assert "binary not found" in ei.value.message
    assert ei.value.tool == "ffmpeg"


def test_run_tool_does_not_use_a_shell(tmp_path):
    marker = tmp_path / "pwned"
    run_tool([sys.executable, "-c", "import sys; print(sys.argv[1])", f"x; touch {marker}"])
    assert not marker.exists()


def test_ensure_output(tmp_path):
    p = tmp_path / "out.mp3"
    with pytest.raises(ToolError):
        ensure_output(p, "ffmpeg")
    p.write_bytes(b"")
    with pytest.raises(ToolError):
        ensure_output(p, "ffmpeg")
    p.write_bytes(b"data")
    assert ensure_output(p, "ffmpeg") == p
