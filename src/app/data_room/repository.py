"""Data room repository -- async CRUD for templates, folders, and documents."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.data_room.models import (
    DataRoomDocumentModel,
    DataRoomFolderModel,
    DataRoomTemplateModel,
)
from src.app.data_room.schemas import (
    DocumentCreate,
    DocumentRead,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    TemplateFolder,
    TemplateRead,
)

logger = structlog.get_logger(__name__)


def _opt_uuid(value: str | None) -> uuid.UUID | None:
    return uuid.UUID(value) if value else None


def _model_to_template(model: DataRoomTemplateModel) -> TemplateRead:
    return TemplateRead(
        id=str(model.id),
        name=model.name,
        description=model.description,
        folder_structure=[TemplateFolder(**f) for f in (model.folder_structure or [])],
        is_active=model.is_active,
    )


def _model_to_folder(model: DataRoomFolderModel) -> FolderRead:
    return FolderRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        parent_id=str(model.parent_id) if model.parent_id else None,
        name=model.name,
        index_number=model.index_number,
        description=model.description,
        is_required=model.is_required,
        is_loi_restricted=model.is_loi_restricted,
        is_not_applicable=model.is_not_applicable,
        sort_order=model.sort_order,
        created_at=model.created_at,
    )


def _model_to_document(model: DataRoomDocumentModel) -> DocumentRead:
    return DocumentRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        folder_id=str(model.folder_id) if model.folder_id else None,
        file_name=model.file_name,
        file_path=model.file_path,
        file_size=model.file_size,
        file_type=model.file_type,
        mime_type=model.mime_type,
        status=model.status,
        uploaded_by=str(model.uploaded_by) if model.uploaded_by else None,
        reviewed_by=str(model.reviewed_by) if model.reviewed_by else None,
        approved_at=model.approved_at,
        rejection_reason=model.rejection_reason,
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class DataRoomRepository:
    """Async CRUD for data room templates, folders, and documents.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Templates ───────────────────────────────────────────────────────────

    async def get_template(self, template_id: str) -> TemplateRead | None:
        async for session in self._session_factory():
            model = await session.get(DataRoomTemplateModel, uuid.UUID(template_id))
            return _model_to_template(model) if model else None

    async def list_templates(self) -> list[TemplateRead]:
        async for session in self._session_factory():
            stmt = (
                select(DataRoomTemplateModel)
                .where(DataRoomTemplateModel.is_active.is_(True))
                .order_by(DataRoomTemplateModel.name)
            )
            result = await session.execute(stmt)
            return [_model_to_template(m) for m in result.scalars().all()]

    async def create_template(
        self, name: str, folders: list[TemplateFolder], description: str | None = None
    ) -> TemplateRead:
        async for session in self._session_factory():
            model = DataRoomTemplateModel(
                name=name,
                description=description,
                folder_structure=[f.model_dump() for f in folders],
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_template(model)

    # ── Folders ─────────────────────────────────────────────────────────────

    async def count_folders(self, deal_id: str) -> int:
        async for session in self._session_factory():
            stmt = select(func.count()).select_from(DataRoomFolderModel).where(
                DataRoomFolderModel.deal_id == uuid.UUID(deal_id)
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def list_folders(self, deal_id: str) -> list[FolderRead]:
        async for session in self._session_factory():
            stmt = (
                select(DataRoomFolderModel)
                .where(DataRoomFolderModel.deal_id == uuid.UUID(deal_id))
                .order_by(DataRoomFolderModel.sort_order, DataRoomFolderModel.name)
            )
            result = await session.execute(stmt)
            return [_model_to_folder(m) for m in result.scalars().all()]

    async def get_folder(self, folder_id: str) -> FolderRead | None:
        async for session in self._session_factory():
            model = await session.get(DataRoomFolderModel, uuid.UUID(folder_id))
            return _model_to_folder(model) if model else None

    async def create_folder(self, deal_id: str, data: FolderCreate) -> FolderRead:
        async for session in self._session_factory():
            model = DataRoomFolderModel(
                deal_id=uuid.UUID(deal_id),
                parent_id=_opt_uuid(data.parent_id),
                name=data.name,
                index_number=data.index_number,
                description=data.description,
                is_required=data.is_required,
                is_loi_restricted=data.is_loi_restricted,
                sort_order=data.sort_order,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_folder(model)

    async def create_folders(self, deal_id: str, folders: list[FolderCreate]) -> list[FolderRead]:
        """Insert a batch of folders in one transaction."""
        deal_uuid = uuid.UUID(deal_id)
        async for session in self._session_factory():
            models = [
                DataRoomFolderModel(
                    deal_id=deal_uuid,
                    name=f.name,
                    index_number=f.index_number,
                    description=f.description,
                    is_required=f.is_required,
                    is_loi_restricted=f.is_loi_restricted,
                    sort_order=f.sort_order,
                )
                for f in folders
            ]
            session.add_all(models)
            await session.commit()
            for model in models:
                await session.refresh(model)
            return [_model_to_folder(m) for m in models]

    async def update_folder(self, folder_id: str, data: FolderUpdate) -> FolderRead:
        values = data.model_dump(exclude_none=True)
        async for session in self._session_factory():
            model = await session.get(DataRoomFolderModel, uuid.UUID(folder_id))
            if model is None:
                raise ValueError(f"Folder not found: {folder_id}")
            for key, value in values.items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_folder(model)

    # ── Documents ───────────────────────────────────────────────────────────

    async def create_document(self, data: DocumentCreate) -> DocumentRead:
        async for session in self._session_factory():
            model = DataRoomDocumentModel(
                deal_id=uuid.UUID(data.deal_id),
                folder_id=_opt_uuid(data.folder_id),
                file_name=data.file_name,
                file_path=data.file_path,
                file_size=data.file_size,
                file_type=data.file_type,
                mime_type=data.mime_type,
                status="pending",
                uploaded_by=_opt_uuid(data.uploaded_by),
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("data_room.document_created", document_id=str(model.id), deal_id=data.deal_id)
            return _model_to_document(model)

    async def get_document(self, document_id: str) -> DocumentRead | None:
        async for session in self._session_factory():
            model = await session.get(DataRoomDocumentModel, uuid.UUID(document_id))
            return _model_to_document(model) if model else None

    async def list_documents(
        self, deal_id: str, folder_id: str | None = None
    ) -> list[DocumentRead]:
        async for session in self._session_factory():
            stmt = select(DataRoomDocumentModel).where(
                DataRoomDocumentModel.deal_id == uuid.UUID(deal_id)
            )
            if folder_id:
                stmt = stmt.where(DataRoomDocumentModel.folder_id == uuid.UUID(folder_id))
            stmt = stmt.order_by(DataRoomDocumentModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_document(m) for m in result.scalars().all()]

    async def update_document(self, document_id: str, fields: dict[str, Any]) -> DocumentRead:
        """Write status/review/folder columns; None values are written."""
        async for session in self._session_factory():
            model = await session.get(DataRoomDocumentModel, uuid.UUID(document_id))
            if model is None:
                raise ValueError(f"Document not found: {document_id}")
            for key, value in fields.items():
                if key in ("folder_id", "reviewed_by") and value is not None:
                    value = uuid.UUID(str(value))
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_document(model)

    async def delete_document(self, document_id: str) -> None:
        async for session in self._session_factory():
            model = await session.get(DataRoomDocumentModel, uuid.UUID(document_id))
            if model is None:
                raise ValueError(f"Document not found: {document_id}")
            await session.delete(model)
            await session.commit()
            return

