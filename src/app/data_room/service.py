"""Data room service -- template setup, uploads, review, and approval.

Backs the create_data_room_from_template procedure and every document
operation on the data-room-documents bucket. Each document operation
appends to the deal activity feed. Uploads rejected for malicious content
are recorded as malicious_file_detected security events.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import (
    DealActivityCreate,
    DealActivityType,
    SecurityEventCreate,
)
from src.app.core.monitoring import documents_uploaded_total
from src.app.data_room import approval
from src.app.data_room.folder_mapping import map_file_to_folder
from src.app.data_room.health import approval_completion, compute_health
from src.app.data_room.repository import DataRoomRepository
from src.app.data_room.schemas import (
    CreateFromTemplateResult,
    DataRoomHealth,
    DocumentCreate,
    DocumentRead,
    DocumentStatus,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    SignedUrlRead,
    TemplateFolder,
    TemplateRead,
)
from src.app.data_room.storage import LocalStorageBackend
from src.app.data_room.templates import STANDARD_FOLDERS, STANDARD_TEMPLATE_NAME
from src.app.data_room.validation import (
    MaliciousContentError,
    storage_safe_name,
    validate_upload,
)
from src.app.deals.repository import DealRepository
from src.app.deals.schemas import DealRead

logger = structlog.get_logger(__name__)


class DataRoomExistsError(ValueError):
    """Raised when a template is applied to a deal that already has folders."""


class DataRoomService:
    """Data room operations for a deal.

    Args:
        repository: DataRoomRepository.
        deals: DealRepository, for deal lookups and approval columns.
        activity: ActivityRepository for the feed and security events.
        storage: Object storage backend.
        bucket: Documents bucket name.
        signed_url_expires: Signed URL lifetime in seconds.
        max_upload_bytes: Upload size limit.
    """

    def __init__(
        self,
        repository: DataRoomRepository,
        deals: DealRepository,
        activity: ActivityRepository,
        storage: LocalStorageBackend,
        bucket: str = "data-room-documents",
        signed_url_expires: int = 900,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ) -> None:
        self._repo = repository
        self._deals = deals
        self._activity = activity
        self._storage = storage
        self._bucket = bucket
        self._signed_url_expires = signed_url_expires
        self._max_upload_bytes = max_upload_bytes

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    async def _require_deal(self, deal_id: str) -> DealRead:
        deal = await self._deals.get_deal(deal_id)
        if deal is None:
            raise ValueError(f"Deal not found: {deal_id}")
        return deal

    async def _require_document(self, document_id: str) -> DocumentRead:
        doc = await self._repo.get_document(document_id)
        if doc is None:
            raise ValueError(f"Document not found: {document_id}")
        return doc

    async def _log(
        self,
        doc: DocumentRead,
        activity_type: DealActivityType,
        user_id: str | None,
        **metadata: object,
    ) -> None:
        await self._activity.log_deal_activity(
            DealActivityCreate(
                deal_id=doc.deal_id,
                activity_type=activity_type,
                entity_type="document",
                entity_id=doc.id,
                metadata={"file_name": doc.file_name, **metadata},
                user_id=user_id,
            )
        )

    # ── Template Setup ──────────────────────────────────────────────────────

    async def create_from_template(
        self, deal_id: str, template_id: str | None = None
    ) -> CreateFromTemplateResult:
        """create_data_room_from_template: build the deal's folder structure.

        Uses the standard structure when no template id is given.

        Raises:
            ValueError: Unknown deal or template.
            DataRoomExistsError: The deal already has folders.
        """
        await self._require_deal(deal_id)
        if await self._repo.count_folders(deal_id) > 0:
            raise DataRoomExistsError("Data room already exists for this deal")

        template_name = STANDARD_TEMPLATE_NAME
        structure: list[TemplateFolder] = STANDARD_FOLDERS
        if template_id:
            template = await self._repo.get_template(template_id)
            if template is None or not template.is_active:
                raise ValueError(f"Template not found: {template_id}")
            template_name = template.name
            structure = template.folder_structure

        folders = await self._repo.create_folders(
            deal_id,
            [
                FolderCreate(
                    name=f.name,
                    index_number=f.index_number,
                    description=f.description,
                    is_required=f.is_required,
                    is_loi_restricted=f.is_loi_restricted,
                    sort_order=position,
                )
                for position, f in enumerate(structure)
            ],
        )
        await self._deals.update_fields(deal_id, {"approval_status": "draft"})
        logger.info(
            "data_room.created_from_template",
            deal_id=deal_id,
            template=template_name,
            folders=len(folders),
        )
        return CreateFromTemplateResult(
            deal_id=deal_id, template_name=template_name, folders_created=len(folders)
        )

    # ── Folders ─────────────────────────────────────────────────────────────

    async def list_templates(self) -> list[TemplateRead]:
        return await self._repo.list_templates()

    async def list_folders(self, deal_id: str) -> list[FolderRead]:
        return await self._repo.list_folders(deal_id)

    async def create_folder(self, deal_id: str, data: FolderCreate) -> FolderRead:
        await self._require_deal(deal_id)
        return await self._repo.create_folder(deal_id, data)

    async def update_folder(self, deal_id: str, folder_id: str, data: FolderUpdate) -> FolderRead:
        folder = await self._repo.get_folder(folder_id)
        if folder is None or folder.deal_id != deal_id:
            raise ValueError(f"Folder not found: {folder_id}")
        return await self._repo.update_folder(folder_id, data)

    # ── Documents ───────────────────────────────────────────────────────────

    async def list_documents(self, deal_id: str, folder_id: str | None = None) -> list[DocumentRead]:
        return await self._repo.list_documents(deal_id, folder_id)

    async def get_document(self, document_id: str) -> DocumentRead:
        return await self._require_document(document_id)

    async def upload_document(
        self,
        deal_id: str,
        file_name: str,
        content: bytes,
        mime_type: str | None,
        folder_id: str | None = None,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> DocumentRead:
        """Validate, store, and register an uploaded file.

        When folder_id is omitted the file name is mapped to a folder; the
        document stays at the root when nothing matches.

        Raises:
            ValueError: Unknown deal or folder.
            FileValidationError: The file was rejected.
        """
        await self._require_deal(deal_id)
        try:
            validated = validate_upload(file_name, mime_type, content, self._max_upload_bytes)
        except MaliciousContentError as exc:
            await self._activity.log_security_event(
                SecurityEventCreate(
                    event_type="malicious_file_detected",
                    event_data={
                        "filename": file_name,
                        "deal_id": deal_id,
                        "pattern": exc.pattern,
                    },
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            )
            logger.warning("data_room.malicious_file_detected", deal_id=deal_id, filename=file_name)
            raise

        folders = await self._repo.list_folders(deal_id)
        if folder_id:
            if not any(f.id == folder_id for f in folders):
                raise ValueError(f"Folder not found: {folder_id}")
        else:
            folder_id = map_file_to_folder(validated.sanitized_name, folders)

        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        object_path = (
            f"{deal_id}/{folder_id or 'root'}/{timestamp}_{storage_safe_name(validated.sanitized_name)}"
        )
        await self._storage.upload(self._bucket, object_path, content)

        try:
            doc = await self._repo.create_document(
                DocumentCreate(
                    deal_id=deal_id,
                    folder_id=folder_id,
                    file_name=validated.sanitized_name,
                    file_path=object_path,
                    file_size=validated.size,
                    file_type=validated.extension.lstrip("."),
                    mime_type=validated.mime_type,
                    uploaded_by=user_id,
                )
            )
        except Exception:
            # No row references the object yet.
            logger.warning(
                "data_room.document_insert_failed", deal_id=deal_id, file_path=object_path
            )
            await self._storage.remove(self._bucket, object_path)
            raise
        await self._log(doc, DealActivityType.DOCUMENT_UPLOADED, user_id, folder_id=folder_id)
        documents_uploaded_total.labels(file_type=doc.file_type or "unknown").inc()
        logger.info(
            "data_room.document_uploaded",
            deal_id=deal_id,
            document_id=doc.id,
            folder_id=folder_id,
            size=validated.size,
        )
        return doc

    async def set_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        reviewer_id: str,
        rejection_reason: str | None = None,
    ) -> DocumentRead:
        """Approve, reject, or reset a document's review status."""
        await self._require_document(document_id)
        fields: dict[str, object] = {"status": status.value, "reviewed_by": reviewer_id}
        if status == DocumentStatus.APPROVED:
            fields["approved_at"] = datetime.now(timezone.utc)
            fields["rejection_reason"] = None
        elif status == DocumentStatus.REJECTED:
            fields["rejection_reason"] = rejection_reason
        doc = await self._repo.update_document(document_id, fields)

        if status == DocumentStatus.APPROVED:
            await self._log(doc, DealActivityType.DOCUMENT_APPROVED, reviewer_id)
        elif status == DocumentStatus.REJECTED:
            await self._log(
                doc,
                DealActivityType.DOCUMENT_REJECTED,
                reviewer_id,
                rejection_reason=rejection_reason,
            )
        return doc

    async def move_document(
        self, document_id: str, folder_id: str | None, user_id: str | None = None
    ) -> DocumentRead:
        current = await self._require_document(document_id)
        if folder_id:
            folder = await self._repo.get_folder(folder_id)
            if folder is None or folder.deal_id != current.deal_id:
                raise ValueError(f"Folder not found: {folder_id}")
        doc = await self._repo.update_document(document_id, {"folder_id": folder_id})
        await self._log(
            doc,
            DealActivityType.DOCUMENT_MOVED,
            user_id,
            from_folder_id=current.folder_id,
            to_folder_id=folder_id,
        )
        return doc

    async def delete_document(self, document_id: str, user_id: str | None = None) -> None:
        """Remove the stored object, then the row."""
        doc = await self._require_document(document_id)
        await self._storage.remove(self._bucket, doc.file_path)
        await self._repo.delete_document(document_id)
        await self._log(doc, DealActivityType.DOCUMENT_DELETED, user_id)
        logger.info("data_room.document_deleted", deal_id=doc.deal_id, document_id=document_id)

    async def create_download_url(
        self, document_id: str, user_id: str | None = None
    ) -> SignedUrlRead:
        """Issue a signed URL for the document and log the download."""
        doc = await self._require_document(document_id)
        url = self._storage.create_signed_url(
            self._bucket, doc.file_path, self._signed_url_expires
        )
        await self._log(doc, DealActivityType.DOCUMENT_DOWNLOADED, user_id)
        return SignedUrlRead(signed_url=url, expires_in=self._signed_url_expires)

    # ── Health & Approval ───────────────────────────────────────────────────

    async def get_health(self, deal_id: str) -> DataRoomHealth:
        folders = await self._repo.list_folders(deal_id)
        documents = await self._repo.list_documents(deal_id)
        return compute_health(folders, documents)

    async def get_approval_completion(self, deal_id: str) -> int:
        folders = await self._repo.list_folders(deal_id)
        documents = await self._repo.list_documents(deal_id)
        return approval_completion(folders, documents)

    async def submit_for_review(self, deal_id: str) -> DealRead:
        deal = await self._require_deal(deal_id)
        fields = approval.submit_for_review(deal.approval_status, datetime.now(timezone.utc))
        logger.info("data_room.submitted_for_review", deal_id=deal_id)
        return await self._deals.update_fields(deal_id, fields)

    async def approve(self, deal_id: str, approver_id: str, notes: str | None = None) -> DealRead:
        deal = await self._require_deal(deal_id)
        fields = approval.approve(
            deal.approval_status, datetime.now(timezone.utc), approver_id, notes
        )
        logger.info("data_room.approved", deal_id=deal_id, approved_by=approver_id)
        return await self._deals.update_fields(deal_id, fields)

    async def request_revisions(self, deal_id: str, notes: str | None) -> DealRead:
        deal = await self._require_deal(deal_id)
        fields = approval.request_revisions(
            deal.approval_status, datetime.now(timezone.utc), notes
        )
        logger.info("data_room.revisions_requested", deal_id=deal_id)
        return await self._deals.update_fields(deal_id, fields)
