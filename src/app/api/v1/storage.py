"""Signed-URL object downloads.

URLs issued by LocalStorageBackend.create_signed_url point here. The
token alone authorises the download, so no Authorization header is needed.
"""

from __future__ import annotations

import mimetypes

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import Response

from src.app.core.security import verify_token
from src.app.data_room.storage import ObjectNotFoundError, StorageError

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
async def download_object(
    bucket: str,
    path: str,
    request: Request,
    token: str = Query(...),
) -> Response:
    payload = verify_token(token, token_type="storage")
    if payload.get("bucket") != bucket or payload.get("path") != path:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token does not match the requested object",
        )

    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage not initialized",
        )
    try:
        content = await storage.download(bucket, path)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    media_type, _ = mimetypes.guess_type(path)
    filename = path.rsplit("/", 1)[-1]
    return Response(
        content=content,
        media_type=media_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
