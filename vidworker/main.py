# main.py: FastAPI app (fetch video -> ffmpeg audio/thumbnail -> bucket)
from __future__ import annotations
import logging
import pathlib
import time
from typing import Callable, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings
from .pipeline import MediaPipeline
from .s3_utils import StorageGateway
from .utils import run_tool
from .web.routes_media import fail, router as media_router

logger = logging.getLogger("vidworker")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x not in ("body", "query"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageGateway] = None,
    runner: Callable[[List[str]], str] = run_tool,
) -> FastAPI:
    settings = settings or Settings.from_env()
    storage = storage or StorageGateway(settings)
    pathlib.Path(settings.tmp_dir).mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="vidworker", version=__version__)
    app.state.settings = settings
    app.state.storage = storage
    app.state.pipeline = MediaPipeline(settings, storage, runner=runner)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(request: Request, exc: RequestValidationError):
        msg = _validation_message(exc)
        logger.warning(f"[{request.url.path}] validation error: {msg}")
        return fail(400, msg)

    @app.get("/")
    def root():
        return {"ok": True, "service": "vidworker", "version": __version__, "time": int(time.time())}

    @app.get("/health")
    def health():
        return {"status": "ok", "message": "Server is running"}

    app.include_router(media_router)
    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info(f"Starting vidworker on http://{settings.host}:{settings.port} bucket={settings.bucket}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `uvicorn vidworker.main:app`; built on first access so importing create_app stays side-effect free
    global _app
    if name == "app":
        if _app is None:
            configure_logging(Settings.from_env().log_level)
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
