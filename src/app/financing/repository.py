"""Financing repository -- async CRUD for lenders, applications, documents, conditions, activity."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.financing.models import (
    FinancingActivityModel,
    FinancingApplicationModel,
    FinancingConditionModel,
    FinancingDocumentModel,
    LenderModel,
)
from src.app.financing.schemas import (
    ApplicationCreate,
    ApplicationFilter,
    ApplicationRead,
    ConditionCreate,
    ConditionRead,
    FinancingActivityCreate,
    FinancingActivityRead,
    FinancingDocumentCreate,
    FinancingDocumentRead,
    LenderCreate,
    LenderRead,
)

logger = structlog.get_logger(__name__)

_UUID_COLUMNS = {
    "lender_id",
    "assigned_to",
    "partner_id",
    "reviewed_by",
    "completed_by",
    "created_by",
}

ACTIVITY_LIMIT = 50


def _uuid(value: Any) -> uuid.UUID | None:
    return uuid.UUID(str(value)) if value is not None else None


def _str(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


def _float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _model_to_lender(model: LenderModel) -> LenderRead:
    return LenderRead(
        id=str(model.id),
        name=model.name,
        type=model.type,
        contact_name=model.contact_name,
        contact_email=model.contact_email,
        contact_phone=model.contact_phone,
        website=model.website,
        notes=model.notes,
        avg_close_days=model.avg_close_days,
        success_rate=model.success_rate,
        is_preferred=model.is_preferred,
        is_active=model.is_active,
        created_at=model.created_at,
    )


def _model_to_application(
    model: FinancingApplicationModel, lender: LenderModel | None = None
) -> ApplicationRead:
    return ApplicationRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        lender_id=_str(model.lender_id),
        application_number=model.application_number,
        financing_type=model.financing_type,
        stage=model.stage,
        loan_amount=_float(model.loan_amount),
        interest_rate=_float(model.interest_rate),
        term_months=model.term_months,
        amortization_months=model.amortization_months,
        down_payment_percent=_float(model.down_payment_percent),
        submitted_at=model.submitted_at,
        approved_at=model.approved_at,
        closing_date=model.closing_date,
        funded_at=model.funded_at,
        assigned_to=_str(model.assigned_to),
        partner_id=_str(model.partner_id),
        priority=model.priority,
        health_score=model.health_score if model.health_score is not None else 100,
        stage_entered_at=model.stage_entered_at,
        internal_notes=model.internal_notes,
        decline_reason=model.decline_reason,
        is_primary=model.is_primary,
        created_by=_str(model.created_by),
        created_at=model.created_at,
        lender=_model_to_lender(lender) if lender is not None else None,
    )


def _model_to_document(model: FinancingDocumentModel) -> FinancingDocumentRead:
    return FinancingDocumentRead(
        id=str(model.id),
        application_id=str(model.application_id),
        name=model.name,
        description=model.description,
        category=model.category,
        status=model.status,
        due_date=model.due_date,
        notes=model.notes,
        file_path=model.file_path,
        file_name=model.file_name,
        file_size=model.file_size,
        file_type=model.file_type,
        requested_at=model.requested_at,
        received_at=model.received_at,
        reviewed_at=model.reviewed_at,
        reviewed_by=_str(model.reviewed_by),
        rejection_reason=model.rejection_reason,
        created_at=model.created_at,
    )


def _model_to_condition(model: FinancingConditionModel) -> ConditionRead:
    return ConditionRead(
        id=str(model.id),
        application_id=str(model.application_id),
        title=model.title,
        description=model.description,
        category=model.category,
        status=model.status,
        due_date=model.due_date,
        assigned_to=_str(model.assigned_to),
        notes=model.notes,
        order_index=model.order_index or 0,
        completed_at=model.completed_at,
        completed_by=_str(model.completed_by),
        created_at=model.created_at,
    )


def _model_to_activity(model: FinancingActivityModel) -> FinancingActivityRead:
    return FinancingActivityRead(
        id=str(model.id),
        application_id=str(model.application_id),
        activity_type=model.activity_type,
        title=model.title,
        description=model.description,
        document_id=_str(model.document_id),
        condition_id=_str(model.condition_id),
        metadata=model.metadata_,
        user_id=_str(model.user_id),
        created_at=model.created_at,
    )


def _apply(model: Any, fields: dict[str, Any]) -> None:
    for key, value in fields.items():
        if key in _UUID_COLUMNS:
            value = _uuid(value)
        setattr(model, key, value)


class FinancingRepository:
    """Async CRUD for the financing tables.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Lenders ─────────────────────────────────────────────────────────────

    async def list_lenders(self) -> list[LenderRead]:
        """Active lenders, preferred first, then by name."""
        async for session in self._session_factory():
            stmt = (
                select(LenderModel)
                .where(LenderModel.is_active.is_(True))
                .order_by(LenderModel.is_preferred.desc(), LenderModel.name)
            )
            result = await session.execute(stmt)
            return [_model_to_lender(m) for m in result.scalars().all()]

    async def create_lender(self, data: LenderCreate) -> LenderRead:
        async for session in self._session_factory():
            model = LenderModel(**data.model_dump())
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("financing.lender_created", lender_id=str(model.id))
            return _model_to_lender(model)

    # ── Applications ────────────────────────────────────────────────────────

    async def create_application(
        self, data: ApplicationCreate, created_by: str | None
    ) -> ApplicationRead:
        async for session in self._session_factory():
            model = FinancingApplicationModel()
            _apply(model, data.model_dump())
            model.deal_id = uuid.UUID(data.deal_id)
            model.financing_type = data.financing_type.value
            model.stage = data.stage.value
            model.priority = data.priority.value
            model.created_by = _uuid(created_by)
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_application(model)

    async def get_application(self, application_id: str) -> ApplicationRead | None:
        async for session in self._session_factory():
            stmt = (
                select(FinancingApplicationModel, LenderModel)
                .outerjoin(LenderModel, FinancingApplicationModel.lender_id == LenderModel.id)
                .where(FinancingApplicationModel.id == uuid.UUID(application_id))
            )
            row = (await session.execute(stmt)).first()
            return _model_to_application(row[0], row[1]) if row else None

    async def list_applications(
        self, filters: ApplicationFilter | None = None
    ) -> list[ApplicationRead]:
        """Applications with their lender, newest first."""
        async for session in self._session_factory():
            stmt = select(FinancingApplicationModel, LenderModel).outerjoin(
                LenderModel, FinancingApplicationModel.lender_id == LenderModel.id
            )
            if filters:
                if filters.deal_id:
                    stmt = stmt.where(FinancingApplicationModel.deal_id == uuid.UUID(filters.deal_id))
                if filters.lender_id:
                    stmt = stmt.where(
                        FinancingApplicationModel.lender_id == uuid.UUID(filters.lender_id)
                    )
                if filters.stage:
                    stmt = stmt.where(FinancingApplicationModel.stage == filters.stage.value)
                if filters.assigned_to:
                    stmt = stmt.where(
                        FinancingApplicationModel.assigned_to == uuid.UUID(filters.assigned_to)
                    )
            stmt = stmt.order_by(FinancingApplicationModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_application(app, lender) for app, lender in result.all()]

    async def update_application(
        self, application_id: str, fields: dict[str, Any]
    ) -> ApplicationRead:
        async for session in self._session_factory():
            model = await session.get(FinancingApplicationModel, uuid.UUID(application_id))
            if model is None:
                raise ValueError(f"Financing application not found: {application_id}")
            _apply(model, fields)
            await session.commit()
            await session.refresh(model)
            return _model_to_application(model)

    # ── Documents ───────────────────────────────────────────────────────────

    async def list_documents(self, application_id: str) -> list[FinancingDocumentRead]:
        async for session in self._session_factory():
            stmt = (
                select(FinancingDocumentModel)
                .where(FinancingDocumentModel.application_id == uuid.UUID(application_id))
                .order_by(FinancingDocumentModel.category, FinancingDocumentModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_document(m) for m in result.scalars().all()]

    async def get_document(self, document_id: str) -> FinancingDocumentRead | None:
        async for session in self._session_factory():
            model = await session.get(FinancingDocumentModel, uuid.UUID(document_id))
            return _model_to_document(model) if model else None

    async def create_document(
        self, application_id: str, data: FinancingDocumentCreate
    ) -> FinancingDocumentRead:
        async for session in self._session_factory():
            model = FinancingDocumentModel(
                application_id=uuid.UUID(application_id),
                **data.model_dump(exclude={"status"}),
                status=data.status.value,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_document(model)

    async def update_document(
        self, document_id: str, fields: dict[str, Any]
    ) -> FinancingDocumentRead:
        async for session in self._session_factory():
            model = await session.get(FinancingDocumentModel, uuid.UUID(document_id))
            if model is None:
                raise ValueError(f"Financing document not found: {document_id}")
            _apply(model, fields)
            await session.commit()
            await session.refresh(model)
            return _model_to_document(model)

    # ── Conditions ──────────────────────────────────────────────────────────

    async def list_conditions(self, application_id: str) -> list[ConditionRead]:
        async for session in self._session_factory():
            stmt = (
                select(FinancingConditionModel)
                .where(FinancingConditionModel.application_id == uuid.UUID(application_id))
                .order_by(FinancingConditionModel.order_index, FinancingConditionModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_condition(m) for m in result.scalars().all()]

    async def get_condition(self, condition_id: str) -> ConditionRead | None:
        async for session in self._session_factory():
            model = await session.get(FinancingConditionModel, uuid.UUID(condition_id))
            return _model_to_condition(model) if model else None

    async def create_condition(self, application_id: str, data: ConditionCreate) -> ConditionRead:
        async for session in self._session_factory():
            model = FinancingConditionModel(application_id=uuid.UUID(application_id))
            _apply(model, data.model_dump())
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_condition(model)

    async def update_condition(self, condition_id: str, fields: dict[str, Any]) -> ConditionRead:
        async for session in self._session_factory():
            model = await session.get(FinancingConditionModel, uuid.UUID(condition_id))
            if model is None:
                raise ValueError(f"Financing condition not found: {condition_id}")
            _apply(model, fields)
            await session.commit()
            await session.refresh(model)
            return _model_to_condition(model)

    # ── Activity ────────────────────────────────────────────────────────────

    async def log_activity(self, data: FinancingActivityCreate) -> FinancingActivityRead:
        async for session in self._session_factory():
            model = FinancingActivityModel(
                application_id=uuid.UUID(data.application_id),
                activity_type=data.activity_type,
                title=data.title,
                description=data.description,
                document_id=_uuid(data.document_id),
                condition_id=_uuid(data.condition_id),
                metadata_=data.metadata,
                user_id=_uuid(data.user_id),
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_activity(model)

    async def list_activity(
        self, application_id: str, limit: int = ACTIVITY_LIMIT
    ) -> list[FinancingActivityRead]:
        """Newest first."""
        async for session in self._session_factory():
            stmt = (
                select(FinancingActivityModel)
                .where(FinancingActivityModel.application_id == uuid.UUID(application_id))
                .order_by(FinancingActivityModel.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_model_to_activity(m) for m in result.scalars().all()]
