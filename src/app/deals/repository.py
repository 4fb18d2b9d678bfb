"""Deal repository -- async CRUD for deals, stage history, and diligence requests.

Uses the session_factory callable pattern: every method opens its own
session, commits, and returns Pydantic read schemas. Missing rows on
update raise ValueError, which the API layer maps to 404.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.deals.models import DealModel, DealRequestModel, DealStageHistoryModel
from src.app.deals.schemas import (
    DealCreate,
    DealFilter,
    DealRead,
    DealRequestCreate,
    DealRequestRead,
    DealRequestUpdate,
    DealStage,
    DealUpdate,
    StageHistoryRead,
    StageTransition,
)

logger = structlog.get_logger(__name__)

_UUID_COLUMNS = {"approved_by", "created_by", "company_id"}

# Columns that workflow, approval, and milestone operations may write directly.
UPDATABLE_COLUMNS: frozenset[str] = frozenset({
    "workflow_phase",
    "deal_status",
    "approval_status",
    "submitted_for_review_at",
    "approved_at",
    "approved_by",
    "approval_notes",
    "revision_requested_at",
    "revision_notes",
    "listing_received_at",
    "listing_approved_at",
    "data_room_complete_at",
    "deal_published_at",
    "first_nda_signed_at",
    "loi_submitted_at",
    "loi_accepted_at",
    "purchase_agreement_signed_at",
    "closed_at",
})


# ── Serialization Helpers ───────────────────────────────────────────────────


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _model_to_deal(model: DealModel) -> DealRead:
    """Convert DealModel to DealRead schema."""
    return DealRead(
        id=str(model.id),
        company_id=str(model.company_id),
        company_name=model.company_name,
        title=model.title,
        description=model.description,
        industry=model.industry,
        location=model.location,
        asking_price=model.asking_price,
        revenue=model.revenue,
        ebitda=model.ebitda,
        requires_nda=model.requires_nda,
        deal_status=model.deal_status,
        workflow_phase=model.workflow_phase,
        current_stage=model.current_stage,
        stage_entered_at=model.stage_entered_at,
        approval_status=model.approval_status,
        submitted_for_review_at=model.submitted_for_review_at,
        approved_at=model.approved_at,
        approved_by=_str_or_none(model.approved_by),
        approval_notes=model.approval_notes,
        revision_requested_at=model.revision_requested_at,
        revision_notes=model.revision_notes,
        listing_received_at=model.listing_received_at,
        listing_approved_at=model.listing_approved_at,
        data_room_complete_at=model.data_room_complete_at,
        deal_published_at=model.deal_published_at,
        first_nda_signed_at=model.first_nda_signed_at,
        loi_submitted_at=model.loi_submitted_at,
        loi_accepted_at=model.loi_accepted_at,
        purchase_agreement_signed_at=model.purchase_agreement_signed_at,
        closed_at=model.closed_at,
        created_by=_str_or_none(model.created_by),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_history(model: DealStageHistoryModel) -> StageHistoryRead:
    return StageHistoryRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        stage=model.stage,
        entered_at=model.entered_at,
        exited_at=model.exited_at,
        duration_days=model.duration_days,
        triggered_by=model.triggered_by,
        trigger_event=model.trigger_event,
        user_id=_str_or_none(model.user_id),
    )


def _model_to_request(model: DealRequestModel) -> DealRequestRead:
    return DealRequestRead(
        id=str(model.id),
        deal_id=str(model.deal_id),
        title=model.title,
        description=model.description,
        category=model.category,
        priority=model.priority,
        status=model.status,
        asked_by=_str_or_none(model.asked_by),
        assigned_to=_str_or_none(model.assigned_to),
        due_date=model.due_date,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class DealRepository:
    """Async CRUD operations for deals and their stage and request records.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Deals ───────────────────────────────────────────────────────────────

    async def create_deal(self, data: DealCreate, created_by: str | None = None) -> DealRead:
        """Create a deal in deal_initiated and open its first stage history entry."""
        now = datetime.now(timezone.utc)
        async for session in self._session_factory():
            model = DealModel(
                company_id=uuid.UUID(data.company_id) if data.company_id else uuid.uuid4(),
                company_name=data.company_name,
                title=data.title,
                description=data.description,
                industry=data.industry,
                location=data.location,
                asking_price=data.asking_price,
                revenue=data.revenue,
                ebitda=data.ebitda,
                requires_nda=data.requires_nda,
                deal_status=data.deal_status.value,
                workflow_phase=data.workflow_phase,
                current_stage=DealStage.DEAL_INITIATED.value,
                stage_entered_at=now,
                created_by=uuid.UUID(created_by) if created_by else None,
            )
            session.add(model)
            await session.flush()
            session.add(
                DealStageHistoryModel(
                    deal_id=model.id,
                    stage=DealStage.DEAL_INITIATED.value,
                    entered_at=now,
                    triggered_by="manual",
                    user_id=model.created_by,
                )
            )
            await session.commit()
            await session.refresh(model)
            logger.info("deal.created", deal_id=str(model.id), company_name=model.company_name)
            return _model_to_deal(model)

    async def get_deal(self, deal_id: str) -> DealRead | None:
        async for session in self._session_factory():
            model = await session.get(DealModel, uuid.UUID(deal_id))
            return _model_to_deal(model) if model else None

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        async for session in self._session_factory():
            stmt = select(DealModel)
            if filters:
                if filters.deal_status:
                    stmt = stmt.where(DealModel.deal_status == filters.deal_status.value)
                if filters.workflow_phase:
                    stmt = stmt.where(DealModel.workflow_phase == filters.workflow_phase)
                if filters.current_stage:
                    stmt = stmt.where(DealModel.current_stage == filters.current_stage.value)
            stmt = stmt.order_by(DealModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_deal(m) for m in result.scalars().all()]

    async def list_deals_by_company(self, company_id: str) -> list[DealRead]:
        async for session in self._session_factory():
            stmt = select(DealModel).where(DealModel.company_id == uuid.UUID(company_id))
            result = await session.execute(stmt)
            return [_model_to_deal(m) for m in result.scalars().all()]

    async def update_deal(self, deal_id: str, data: DealUpdate) -> DealRead:
        """Apply the provided (non-None) fields of a DealUpdate."""
        values = data.model_dump(exclude_none=True, mode="json")
        async for session in self._session_factory():
            model = await session.get(DealModel, uuid.UUID(deal_id))
            if model is None:
                raise ValueError(f"Deal not found: {deal_id}")
            for key, value in values.items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_deal(model)

    async def update_fields(self, deal_id: str, fields: dict[str, Any]) -> DealRead:
        """Write lifecycle columns (phase, milestones, approval) verbatim.

        None values are written, so a timestamp can be cleared.

        Raises:
            ValueError: If the deal does not exist or a column is not updatable.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        async for session in self._session_factory():
            model = await session.get(DealModel, uuid.UUID(deal_id))
            if model is None:
                raise ValueError(f"Deal not found: {deal_id}")
            for key, value in fields.items():
                if key in _UUID_COLUMNS and value is not None:
                    value = uuid.UUID(str(value))
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            logger.info("deal.fields_updated", deal_id=deal_id, fields=sorted(fields))
            return _model_to_deal(model)

    # ── Stage History ───────────────────────────────────────────────────────

    async def get_stage_history(self, deal_id: str) -> list[StageHistoryRead]:
        """Stage history, most recently entered first."""
        async for session in self._session_factory():
            stmt = (
                select(DealStageHistoryModel)
                .where(DealStageHistoryModel.deal_id == uuid.UUID(deal_id))
                .order_by(DealStageHistoryModel.entered_at.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_history(m) for m in result.scalars().all()]

    async def apply_stage_transition(self, transition: StageTransition) -> DealRead:
        """Close the open history entry, open a new one, and move the deal.

        All three writes happen in one transaction.
        """
        deal_uuid = uuid.UUID(transition.deal_id)
        user_uuid = uuid.UUID(transition.user_id) if transition.user_id else None
        async for session in self._session_factory():
            model = await session.get(DealModel, deal_uuid)
            if model is None:
                raise ValueError(f"Deal not found: {transition.deal_id}")

            open_entries = await session.execute(
                select(DealStageHistoryModel).where(
                    DealStageHistoryModel.deal_id == deal_uuid,
                    DealStageHistoryModel.exited_at.is_(None),
                )
            )
            for entry in open_entries.scalars().all():
                entry.exited_at = transition.at
                elapsed = (transition.at - entry.entered_at).total_seconds() / 86400
                entry.duration_days = max(math.floor(elapsed), 0)

            session.add(
                DealStageHistoryModel(
                    deal_id=deal_uuid,
                    stage=transition.new_stage.value,
                    entered_at=transition.at,
                    triggered_by=transition.triggered_by.value,
                    trigger_event=transition.trigger_event,
                    user_id=user_uuid,
                )
            )
            model.current_stage = transition.new_stage.value
            model.stage_entered_at = transition.at
            await session.commit()
            await session.refresh(model)
            return _model_to_deal(model)

    # ── Diligence Requests ──────────────────────────────────────────────────

    async def create_request(
        self, deal_id: str, data: DealRequestCreate, asked_by: str | None = None
    ) -> DealRequestRead:
        async for session in self._session_factory():
            model = DealRequestModel(
                deal_id=uuid.UUID(deal_id),
                title=data.title,
                description=data.description,
                category=data.category,
                priority=data.priority,
                status="Open",
                asked_by=uuid.UUID(asked_by) if asked_by else None,
                assigned_to=uuid.UUID(data.assigned_to) if data.assigned_to else None,
                due_date=data.due_date,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_request(model)

    async def get_request(self, request_id: str) -> DealRequestRead | None:
        async for session in self._session_factory():
            model = await session.get(DealRequestModel, uuid.UUID(request_id))
            return _model_to_request(model) if model else None

    async def list_requests(self, deal_id: str) -> list[DealRequestRead]:
        async for session in self._session_factory():
            stmt = (
                select(DealRequestModel)
                .where(DealRequestModel.deal_id == uuid.UUID(deal_id))
                .order_by(DealRequestModel.created_at.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_request(m) for m in result.scalars().all()]

    async def update_request(self, request_id: str, data: DealRequestUpdate) -> DealRequestRead:
        values = data.model_dump(exclude_none=True, mode="json")
        if "assigned_to" in values:
            values["assigned_to"] = uuid.UUID(values["assigned_to"])
        if data.due_date is not None:
            values["due_date"] = data.due_date
        async for session in self._session_factory():
            model = await session.get(DealRequestModel, uuid.UUID(request_id))
            if model is None:
                raise ValueError(f"Request not found: {request_id}")
            for key, value in values.items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_request(model)
