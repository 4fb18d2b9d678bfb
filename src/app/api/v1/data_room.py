"""REST API endpoints for deal data rooms.

Covers template setup, folders, document upload and review, signed
download URLs, the health score, and the approval workflow. Endpoints are
mounted under /deals/{deal_id}/data-room, except single-document routes
which live under /documents/{document_id}.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import BaseModel

from src.app.api.deps import (
    client_ip,
    ensure_deal_access,
    ensure_document_access,
    ensure_permission,
    get_current_user,
    require_staff,
    visible_documents,
)
from src.app.data_room.approval import ApprovalTransitionError, MissingRevisionNotesError
from src.app.data_room.schemas import (
    CreateFromTemplateResult,
    DataRoomHealth,
    DocumentMove,
    DocumentRead,
    DocumentStatusUpdate,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    SignedUrlRead,
    TemplateRead,
)
from src.app.data_room.service import DataRoomExistsError
from src.app.data_room.validation import FileValidationError, read_upload_bytes
from src.app.deals.schemas import DealRead
from src.app.profiles.schemas import ProfileRead

router = APIRouter(tags=["data-room"])


# ── Request/Response Schemas ────────────────────────────────────────────────


class CreateDataRoomRequest(BaseModel):
    template_id: str | None = None


class ApprovalNotes(BaseModel):
    notes: str | None = None


class ApprovalCompletion(BaseModel):
    deal_id: str
    completion_percentage: int


# ── Helpers ─────────────────────────────────────────────────────────────────


def _get_data_room_service(request: Request) -> Any:
    service = getattr(request.app.state, "data_room_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data room service not initialized",
        )
    return service


def _not_found(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


async def _load_document(request: Request, user: ProfileRead, document_id: str) -> DocumentRead:
    service = _get_data_room_service(request)
    try:
        doc = await service.get_document(document_id)
    except ValueError as exc:
        raise _not_found(exc) from exc
    await ensure_document_access(request, user, doc.deal_id, doc.folder_id)
    return doc


# ── Templates & Setup ───────────────────────────────────────────────────────


@router.get("/data-room/templates", response_model=list[TemplateRead])
async def list_templates(
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> list[TemplateRead]:
    return await _get_data_room_service(request).list_templates()


@router.post(
    "/deals/{deal_id}/data-room",
    response_model=CreateFromTemplateResult,
    status_code=201,
)
async def create_data_room(
    deal_id: str,
    request: Request,
    body: CreateDataRoomRequest | None = None,
    user: ProfileRead = Depends(require_staff),
) -> CreateFromTemplateResult:
    """Build the folder structure from a template (standard when omitted)."""
    service = _get_data_room_service(request)
    try:
        return await service.create_from_template(
            deal_id, body.template_id if body else None
        )
    except DataRoomExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise _not_found(exc) from exc


# ── Folders ─────────────────────────────────────────────────────────────────


@router.get("/deals/{deal_id}/data-room/folders", response_model=list[FolderRead])
async def list_folders(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> list[FolderRead]:
    await ensure_deal_access(request, user, deal_id)
    return await _get_data_room_service(request).list_folders(deal_id)


@router.post(
    "/deals/{deal_id}/data-room/folders", response_model=FolderRead, status_code=201
)
async def create_folder(
    deal_id: str,
    body: FolderCreate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> FolderRead:
    try:
        return await _get_data_room_service(request).create_folder(deal_id, body)
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.patch("/deals/{deal_id}/data-room/folders/{folder_id}", response_model=FolderRead)
async def update_folder(
    deal_id: str,
    folder_id: str,
    body: FolderUpdate,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> FolderRead:
    """Rename, reorder, or mark a folder not applicable."""
    try:
        return await _get_data_room_service(request).update_folder(deal_id, folder_id, body)
    except ValueError as exc:
        raise _not_found(exc) from exc


# ── Documents ───────────────────────────────────────────────────────────────


@router.get("/deals/{deal_id}/data-room/documents", response_model=list[DocumentRead])
async def list_documents(
    deal_id: str,
    request: Request,
    folder_id: str | None = None,
    user: ProfileRead = Depends(get_current_user),
) -> list[DocumentRead]:
    """Documents of the deal, or of one folder.

    The NDA gate applies either way; without folder_id, documents in
    folders the caller may not open are left out.
    """
    await ensure_document_access(request, user, deal_id, folder_id)
    documents = await _get_data_room_service(request).list_documents(deal_id, folder_id)
    return await visible_documents(request, user, deal_id, documents)


@router.post(
    "/deals/{deal_id}/data-room/documents", response_model=DocumentRead, status_code=201
)
async def upload_document(
    deal_id: str,
    request: Request,
    file: UploadFile = File(...),
    folder_id: str | None = Form(default=None),
    user: ProfileRead = Depends(get_current_user),
) -> DocumentRead:
    """Upload a file. Without folder_id the file name picks the folder."""
    await ensure_deal_access(request, user, deal_id)
    await ensure_permission(request, user, deal_id, "upload_documents")
    service = _get_data_room_service(request)
    try:
        content = await read_upload_bytes(file, service.max_upload_bytes)
        return await service.upload_document(
            deal_id,
            file.filename or "",
            content,
            file.content_type,
            folder_id=folder_id or None,
            user_id=user.id,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.get("/documents/{document_id}", response_model=DocumentRead)
async def get_document(
    document_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DocumentRead:
    return await _load_document(request, user, document_id)


@router.put("/documents/{document_id}/status", response_model=DocumentRead)
async def set_document_status(
    document_id: str,
    body: DocumentStatusUpdate,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DocumentRead:
    """Approve or reject a document (staff, or members who may review)."""
    doc = await _load_document(request, user, document_id)
    await ensure_permission(request, user, doc.deal_id, "approve_documents")
    try:
        return await _get_data_room_service(request).set_document_status(
            document_id, body.status, user.id, body.rejection_reason
        )
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.put("/documents/{document_id}/folder", response_model=DocumentRead)
async def move_document(
    document_id: str,
    body: DocumentMove,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DocumentRead:
    try:
        return await _get_data_room_service(request).move_document(
            document_id, body.folder_id, user.id
        )
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> None:
    doc = await _load_document(request, user, document_id)
    await ensure_permission(request, user, doc.deal_id, "delete_documents")
    try:
        await _get_data_room_service(request).delete_document(document_id, user.id)
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.post("/documents/{document_id}/download-url", response_model=SignedUrlRead)
async def create_download_url(
    document_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> SignedUrlRead:
    """Short-lived signed URL; the NDA gate and folder restrictions apply."""
    await _load_document(request, user, document_id)
    return await _get_data_room_service(request).create_download_url(document_id, user.id)


# ── Health & Approval ───────────────────────────────────────────────────────


@router.get("/deals/{deal_id}/data-room/health", response_model=DataRoomHealth)
async def get_health(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(get_current_user),
) -> DataRoomHealth:
    await ensure_deal_access(request, user, deal_id)
    return await _get_data_room_service(request).get_health(deal_id)


@router.get("/deals/{deal_id}/data-room/approval-completion", response_model=ApprovalCompletion)
async def get_approval_completion(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> ApprovalCompletion:
    pct = await _get_data_room_service(request).get_approval_completion(deal_id)
    return ApprovalCompletion(deal_id=deal_id, completion_percentage=pct)


async def _approval_action(coro) -> DealRead:
    try:
        return await coro
    except ApprovalTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except MissingRevisionNotesError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ValueError as exc:
        raise _not_found(exc) from exc


@router.post("/deals/{deal_id}/data-room/submit", response_model=DealRead)
async def submit_for_review(
    deal_id: str,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealRead:
    return await _approval_action(
        _get_data_room_service(request).submit_for_review(deal_id)
    )


@router.post("/deals/{deal_id}/data-room/approve", response_model=DealRead)
async def approve_data_room(
    deal_id: str,
    request: Request,
    body: ApprovalNotes | None = None,
    user: ProfileRead = Depends(require_staff),
) -> DealRead:
    return await _approval_action(
        _get_data_room_service(request).approve(
            deal_id, user.id, body.notes if body else None
        )
    )


@router.post("/deals/{deal_id}/data-room/request-revisions", response_model=DealRead)
async def request_revisions(
    deal_id: str,
    body: ApprovalNotes,
    request: Request,
    user: ProfileRead = Depends(require_staff),
) -> DealRead:
    """Send the data room back to draft; notes are mandatory."""
    return await _approval_action(
        _get_data_room_service(request).request_revisions(deal_id, body.notes)
    )
