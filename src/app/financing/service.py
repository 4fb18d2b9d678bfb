"""Financing pipeline -- applications move through lender stages.

Every write that matters to the lender conversation is mirrored into
financing_activity so the application timeline reads like a log.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.app.financing.repository import FinancingRepository
from src.app.financing.schemas import (
    STAGE_LABELS,
    STAGE_TIMESTAMPS,
    ApplicationCreate,
    ApplicationFilter,
    ApplicationRead,
    ApplicationUpdate,
    ConditionCreate,
    ConditionRead,
    ConditionStatus,
    ConditionUpdate,
    FinancingActivityCreate,
    FinancingActivityRead,
    FinancingDocumentCreate,
    FinancingDocumentRead,
    FinancingDocumentStatus,
    FinancingDocumentUpdate,
    FinancingStage,
    LenderCreate,
    LenderRead,
)

logger = structlog.get_logger(__name__)


class DeclineReasonRequiredError(ValueError):
    pass


class FinancingService:
    def __init__(self, repository: FinancingRepository) -> None:
        self._repo = repository

    async def _get_application(self, application_id: str) -> ApplicationRead:
        application = await self._repo.get_application(application_id)
        if application is None:
            raise ValueError(f"Financing application not found: {application_id}")
        return application

    # ── Lenders ─────────────────────────────────────────────────────────────

    async def list_lenders(self) -> list[LenderRead]:
        return await self._repo.list_lenders()

    async def create_lender(self, data: LenderCreate) -> LenderRead:
        lender = await self._repo.create_lender(data)
        logger.info("financing.lender_created", lender_id=lender.id, name=lender.name)
        return lender

    # ── Applications ────────────────────────────────────────────────────────

    async def list_applications(
        self, filters: ApplicationFilter | None = None
    ) -> list[ApplicationRead]:
        return await self._repo.list_applications(filters)

    async def get_application(self, application_id: str) -> ApplicationRead:
        return await self._get_application(application_id)

    async def list_documents(self, application_id: str) -> list[FinancingDocumentRead]:
        await self._get_application(application_id)
        return await self._repo.list_documents(application_id)

    async def list_conditions(self, application_id: str) -> list[ConditionRead]:
        await self._get_application(application_id)
        return await self._repo.list_conditions(application_id)

    async def list_activity(self, application_id: str) -> list[FinancingActivityRead]:
        await self._get_application(application_id)
        return await self._repo.list_activity(application_id)

    async def create_application(self, data: ApplicationCreate, user_id: str) -> ApplicationRead:
        now = datetime.now(timezone.utc)
        application = await self._repo.create_application(data, created_by=user_id)
        # Created directly in a stamped stage (e.g. already submitted).
        column = STAGE_TIMESTAMPS.get(data.stage)
        if column is not None:
            application = await self._repo.update_application(application.id, {column: now})

        await self._repo.log_activity(
            FinancingActivityCreate(
                application_id=application.id,
                activity_type="application_created",
                title="Application created",
                description=f"New {data.financing_type.value} financing application",
                user_id=user_id,
            )
        )
        logger.info(
            "financing.application_created",
            application_id=application.id,
            deal_id=data.deal_id,
            financing_type=data.financing_type.value,
        )
        return application

    async def update_application(
        self, application_id: str, data: ApplicationUpdate, user_id: str
    ) -> ApplicationRead:
        """Apply a partial update; a stage change resets the stage clock.

        Raises:
            ValueError: Unknown application.
            DeclineReasonRequiredError: Declining without a decline_reason.
        """
        current = await self._get_application(application_id)
        fields = data.model_dump(exclude_unset=True)
        # Non-nullable columns ignore an explicit null.
        for key in ("financing_type", "stage", "priority", "health_score", "is_primary"):
            if key in fields and fields[key] is None:
                del fields[key]
        for key in ("financing_type", "stage", "priority"):
            if key in fields:
                fields[key] = fields[key].value

        new_stage = data.stage
        stage_changed = new_stage is not None and new_stage != current.stage
        if stage_changed:
            if new_stage == FinancingStage.DECLINED and not (
                data.decline_reason or current.decline_reason
            ):
                raise DeclineReasonRequiredError("decline_reason is required when declining")
            now = datetime.now(timezone.utc)
            fields["stage_entered_at"] = now
            column = STAGE_TIMESTAMPS.get(new_stage)
            if column is not None:
                fields[column] = now

        updated = await self._repo.update_application(application_id, fields)

        if stage_changed:
            await self._repo.log_activity(
                FinancingActivityCreate(
                    application_id=application_id,
                    activity_type="stage_changed",
                    title=f"Moved to {STAGE_LABELS[new_stage]}",
                    description=(
                        f"{STAGE_LABELS[current.stage]} -> {STAGE_LABELS[new_stage]}"
                    ),
                    metadata={"from_stage": current.stage.value, "to_stage": new_stage.value},
                    user_id=user_id,
                )
            )
            logger.info(
                "financing.stage_changed",
                application_id=application_id,
                from_stage=current.stage.value,
                to_stage=new_stage.value,
            )
        return updated

    # ── Documents ───────────────────────────────────────────────────────────

    async def create_document(
        self, application_id: str, data: FinancingDocumentCreate, user_id: str
    ) -> FinancingDocumentRead:
        await self._get_application(application_id)
        document = await self._repo.create_document(application_id, data)
        await self._repo.log_activity(
            FinancingActivityCreate(
                application_id=application_id,
                activity_type="document_requested",
                title=f"Document requested: {document.name}",
                document_id=document.id,
                user_id=user_id,
            )
        )
        return document

    async def update_document(
        self, document_id: str, data: FinancingDocumentUpdate, user_id: str
    ) -> FinancingDocumentRead:
        current = await self._repo.get_document(document_id)
        if current is None:
            raise ValueError(f"Financing document not found: {document_id}")
        fields = data.model_dump(exclude_unset=True)
        status = data.status
        if status is not None:
            fields["status"] = status.value
            now = datetime.now(timezone.utc)
            if status == FinancingDocumentStatus.RECEIVED and current.received_at is None:
                fields["received_at"] = now
            if status in (FinancingDocumentStatus.APPROVED, FinancingDocumentStatus.REJECTED):
                fields["reviewed_at"] = now
                fields["reviewed_by"] = user_id

        document = await self._repo.update_document(document_id, fields)
        if status is not None and status != current.status:
            await self._repo.log_activity(
                FinancingActivityCreate(
                    application_id=document.application_id,
                    activity_type=f"document_{status.value}",
                    title=f"{document.name}: {status.value.replace('_', ' ')}",
                    document_id=document.id,
                    user_id=user_id,
                )
            )
        return document

    # ── Conditions ──────────────────────────────────────────────────────────

    async def create_condition(
        self, application_id: str, data: ConditionCreate, user_id: str
    ) -> ConditionRead:
        await self._get_application(application_id)
        condition = await self._repo.create_condition(application_id, data)
        await self._repo.log_activity(
            FinancingActivityCreate(
                application_id=application_id,
                activity_type="condition_added",
                title=f"Condition added: {condition.title}",
                condition_id=condition.id,
                user_id=user_id,
            )
        )
        return condition

    async def update_condition(
        self, condition_id: str, data: ConditionUpdate, user_id: str
    ) -> ConditionRead:
        current = await self._repo.get_condition(condition_id)
        if current is None:
            raise ValueError(f"Financing condition not found: {condition_id}")
        fields = data.model_dump(exclude_unset=True)
        status = data.status
        if status is not None:
            fields["status"] = status.value
            if status in (ConditionStatus.APPROVED, ConditionStatus.WAIVED):
                if current.completed_at is None:
                    fields["completed_at"] = datetime.now(timezone.utc)
                    fields["completed_by"] = user_id
            else:
                fields["completed_at"] = None
                fields["completed_by"] = None

        condition = await self._repo.update_condition(condition_id, fields)
        if status is not None and status != current.status:
            await self._repo.log_activity(
                FinancingActivityCreate(
                    application_id=condition.application_id,
                    activity_type=f"condition_{status.value}",
                    title=f"{condition.title}: {status.value.replace('_', ' ')}",
                    condition_id=condition.id,
                    user_id=user_id,
                )
            )
        return condition
