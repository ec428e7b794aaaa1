"""
Attachment endpoints — upload, URL lookup and deletion for one Uploader.

Mount the router in a host application::

    app.include_router(build_router(PhotoUploader()), prefix="/api/v1")
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, HTTPException, Response, UploadFile, status

from attache.core.constants import ORIGINAL, SaveFormat
from attache.core.logging import get_logger
from attache.pipeline.errors import SourceError, UnknownVersionError, ValidationError
from attache.pipeline.state import FileState
from attache.uploader import Uploader

logger = get_logger(__name__)


def _state_payload(uploader: Uploader, state: FileState) -> dict[str, Any]:
    summary = state.to_summary_dict()
    return {
        "filename": state.filename,
        "status": state.status,
        "errors": summary["errors"],
        "state": uploader.save(state, format=SaveFormat.MAP),
    }


def build_router(uploader: Uploader, prefix: str = "/attachments") -> APIRouter:
    """Build a router serving the attachments of ``uploader``."""
    router = APIRouter(prefix=prefix, tags=["Attachments"])

    # ─── Upload ───────────────────────────────────────────────
    @router.post("", status_code=status.HTTP_201_CREATED)
    async def upload_attachment(response: Response, file: UploadFile = File(...)) -> dict[str, Any]:
        """
        Store an uploaded file in every configured version.

        Responds 201 when every version was stored, 500 with the per-version
        errors otherwise.
        """
        try:
            state = await uploader.store(file)
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        except SourceError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        finally:
            await file.close()

        payload = _state_payload(uploader, state)
        if state.ok:
            payload["urls"] = {version: uploader.url(state, version) for version in state.versions}
        else:
            logger.warning("Upload stored with errors", filename=state.filename, errors=payload["errors"])
            response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return payload

    # ─── URL ──────────────────────────────────────────────────
    @router.get("/{filename}/url")
    async def attachment_url(filename: str, version: str = ORIGINAL) -> dict[str, str]:
        """Return the URL of one version."""
        try:
            return {"url": uploader.url(filename, version)}
        except UnknownVersionError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    # ─── Delete ───────────────────────────────────────────────
    @router.delete("/{filename}")
    async def delete_attachment(filename: str, response: Response) -> dict[str, Any]:
        """Delete every version of an attachment."""
        state = await uploader.delete(filename)
        if not state.ok:
            response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return _state_payload(uploader, state)

    return router
