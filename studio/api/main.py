"""FastAPI entrypoint and HTTP routes."""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, File, HTTPException, Request, Response, UploadFile, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from studio.config.settings import get_settings
from studio.imggen.generator_client import RemoteCallError
from studio.imggen.payload import ImagePayload, InputError
from studio.imggen.prompt_builder import ASPECT_RATIOS, ENHANCER_STYLES
from studio.monitoring.logging import configure_logging
from studio.services.session import ImageKind, StudioOptions, StudioSession
from studio.services.store import SessionStore

logger = logging.getLogger(__name__)


class OptionsUpdate(BaseModel):
    """Partial update of the generation options."""

    strength: int | None = Field(default=None, ge=0, le=100)
    enhancer: str | None = None
    aspect_ratio: str | None = None
    color_intensity: int | None = Field(default=None, ge=0, le=100)


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> StudioSession:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown session.") from None


def _state(session_id: str, session: StudioSession, **extra: Any) -> dict[str, Any]:
    return {"session_id": session_id, **session.snapshot(), **extra}


def _unavailable(session: StudioSession, action: str) -> HTTPException:
    if session.busy:
        detail = "Another operation is already in progress."
    else:
        detail = f"Cannot {action} in the current state."
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def create_app(store: SessionStore | None = None) -> FastAPI:
    """Initialise the FastAPI application."""

    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(
        title="Style Studio API",
        version="0.1.0",
        docs_url="/docs" if settings.environment != "prod" else None,
        redoc_url="/redoc" if settings.environment != "prod" else None,
    )
    app.state.store = store if store is not None else SessionStore()

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple health endpoint used for readiness checks."""

        return {"status": "ok"}

    @app.get("/metrics", tags=["system"])
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/options", tags=["studio"])
    async def list_options() -> dict[str, Any]:
        """Selectable enhancer styles and aspect ratios with their defaults."""

        return {
            "enhancers": list(ENHANCER_STYLES),
            "aspect_ratios": list(ASPECT_RATIOS),
            "defaults": asdict(StudioOptions()),
        }

    @app.post("/sessions", status_code=status.HTTP_201_CREATED, tags=["studio"])
    async def create_session(store: SessionStore = Depends(get_store)) -> dict[str, Any]:
        session_id, session = store.create()
        return _state(session_id, session)

    @app.get("/sessions/{session_id}", tags=["studio"])
    async def read_session(
        session_id: str,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        return _state(session_id, session)

    @app.post("/sessions/{session_id}/reset", tags=["studio"])
    async def reset_session(
        session_id: str,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        """Clear both images, the result, the palette and all options."""

        session.clear_all()
        return _state(session_id, session)

    @app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["studio"])
    async def close_session(
        session_id: str,
        store: SessionStore = Depends(get_store),
        session: StudioSession = Depends(get_session),
    ) -> Response:
        """Forget the session and the images it holds."""

        session.clear_all()
        store.drop(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.put("/sessions/{session_id}/images/{kind}", tags=["studio"])
    async def upload_image(
        session_id: str,
        kind: ImageKind,
        file: UploadFile = File(...),
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        data = await file.read()
        try:
            payload = ImagePayload.from_upload(
                data,
                file.content_type,
                max_bytes=settings.max_upload_bytes,
            )
        except InputError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        warning = session.set_image(kind, payload)
        logger.info("Stored %s image (%s, %d bytes)", kind.value, payload.mime_type, len(data))
        return _state(session_id, session, warning=warning)

    @app.delete("/sessions/{session_id}/images/{kind}", tags=["studio"])
    async def clear_image(
        session_id: str,
        kind: ImageKind,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        session.clear_image(kind)
        return _state(session_id, session)

    @app.patch("/sessions/{session_id}/options", tags=["studio"])
    async def update_options(
        session_id: str,
        body: OptionsUpdate,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        try:
            session.update_options(**body.model_dump(exclude_none=True))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _state(session_id, session)

    @app.post("/sessions/{session_id}/generate", tags=["studio"])
    async def generate(
        session_id: str,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        try:
            image = await session.generate()
        except RemoteCallError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"An error occurred: {exc}",
            ) from exc
        if image is None:
            raise _unavailable(session, "generate")
        return _state(session_id, session)

    @app.post("/sessions/{session_id}/upscale", tags=["studio"])
    async def upscale(
        session_id: str,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        try:
            image = await session.upscale()
        except RemoteCallError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"An error occurred during upscaling: {exc}",
            ) from exc
        if image is None:
            raise _unavailable(session, "upscale")
        return _state(session_id, session)

    @app.post("/sessions/{session_id}/recolor", tags=["studio"])
    async def recolor(
        session_id: str,
        session: StudioSession = Depends(get_session),
    ) -> dict[str, Any]:
        try:
            image = await session.apply_palette()
        except RemoteCallError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"An error occurred during color application: {exc}",
            ) from exc
        if image is None:
            raise _unavailable(session, "apply colors")
        return _state(session_id, session)

    @app.get("/sessions/{session_id}/result", tags=["studio"])
    async def download_result(session: StudioSession = Depends(get_session)) -> Response:
        download = session.download()
        if download is None:
            if session.busy:
                raise _unavailable(session, "download")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No result image yet.")
        filename, payload = download
        return Response(
            content=payload.data,
            media_type=payload.mime_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


app = create_app()
