"""Pydantic schemas for data room templates, folders, documents, and health."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ── Templates ───────────────────────────────────────────────────────────────


class TemplateFolder(BaseModel):
    """One folder in a template's structure."""

    index_number: str
    name: str
    description: str | None = None
    is_loi_restricted: bool = False

    @property
    def is_required(self) -> bool:
        return not self.is_loi_restricted


class TemplateRead(BaseModel):
    id: str
    name: str
    description: str | None = None
    folder_structure: list[TemplateFolder] = Field(default_factory=list)
    is_active: bool = True


# ── Folders ─────────────────────────────────────────────────────────────────


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    index_number: str | None = None
    description: str | None = None
    parent_id: str | None = None
    is_required: bool = False
    is_loi_restricted: bool = False
    sort_order: int = 0


class FolderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    is_not_applicable: bool | None = None
    sort_order: int | None = None


class FolderRead(BaseModel):
    id: str
    deal_id: str
    parent_id: str | None = None
    name: str
    index_number: str | None = None
    description: str | None = None
    is_required: bool = True
    is_loi_restricted: bool = False
    is_not_applicable: bool = False
    sort_order: int = 0
    created_at: datetime | None = None


# ── Documents ───────────────────────────────────────────────────────────────


class DocumentCreate(BaseModel):
    """Row written after the file object is stored."""

    deal_id: str
    folder_id: str | None = None
    file_name: str
    file_path: str
    file_size: int | None = None
    file_type: str | None = None
    mime_type: str | None = None
    uploaded_by: str | None = None


class DocumentRead(BaseModel):
    id: str
    deal_id: str
    folder_id: str | None = None
    file_name: str
    file_path: str
    file_size: int | None = None
    file_type: str | None = None
    mime_type: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    uploaded_by: str | None = None
    reviewed_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DocumentStatusUpdate(BaseModel):
    status: DocumentStatus
    rejection_reason: str | None = None


class DocumentMove(BaseModel):
    folder_id: str | None = None


class SignedUrlRead(BaseModel):
    signed_url: str
    expires_in: int


# ── Health & Approval ───────────────────────────────────────────────────────


class DataRoomHealth(BaseModel):
    total_folders: int = 0
    required_folders: int = 0
    folders_with_documents: int = 0
    required_folders_with_documents: int = 0
    total_documents: int = 0
    health_percentage: int = 0
    is_complete: bool = False
    missing_required_folders: list[str] = Field(default_factory=list)


class ApprovalAction(BaseModel):
    """Body for approve / request-revisions."""

    notes: str | None = None


class CreateFromTemplate(BaseModel):
    template_id: str | None = None


class CreateFromTemplateResult(BaseModel):
    deal_id: str
    template_name: str
    folders_created: int
