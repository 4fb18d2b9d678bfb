"""Deal lifecycle service -- workflow phases, stage progression, and requests.

Coordinates DealRepository writes with the activity feed and the stage
progression engine. Every operation that moves a lifecycle timestamp
re-runs the stage trigger check so automatic progression happens as soon
as its milestone is recorded.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from pydantic import BaseModel

from src.app.activity.repository import ActivityRepository
from src.app.activity.schemas import DealActivityCreate, DealActivityType
from src.app.core.monitoring import deal_stage_transitions_total
from src.app.deals.progression import (
    StageProgressionCheck,
    StageProgressionEngine,
    request_completion,
    summarize_requests,
)
from src.app.deals.repository import DealRepository
from src.app.deals.schemas import (
    DealCreate,
    DealFilter,
    DealRead,
    DealRequestCreate,
    DealRequestRead,
    DealRequestUpdate,
    DealStage,
    DealTimestamp,
    DealUpdate,
    RequestStatus,
    RequestSummary,
    StageHistoryRead,
    StageTransition,
    TriggeredBy,
)
from src.app.deals.workflow import Milestone, WorkflowPhase, publish_changes

logger = structlog.get_logger(__name__)


class StageProgressionResult(BaseModel):
    """Result of progress_deal_stage."""

    success: bool
    old_stage: DealStage
    new_stage: DealStage


class DealNotFoundError(ValueError):
    """Raised when an operation targets a deal id that does not exist."""


class DealService:
    """Lifecycle operations on a deal.

    Args:
        repository: DealRepository (or a test double with the same methods).
        activity: ActivityRepository used for the deal activity feed.
        engine: Stage progression engine; a default one is created if omitted.
    """

    def __init__(
        self,
        repository: DealRepository,
        activity: ActivityRepository,
        engine: StageProgressionEngine | None = None,
    ) -> None:
        self._repo = repository
        self._activity = activity
        self._engine = engine or StageProgressionEngine()

    async def _log(
        self,
        deal_id: str,
        activity_type: DealActivityType,
        entity_type: str,
        entity_id: str | None = None,
        metadata: dict | None = None,
        user_id: str | None = None,
    ) -> None:
        await self._activity.log_deal_activity(
            DealActivityCreate(
                deal_id=deal_id,
                activity_type=activity_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata or {},
                user_id=user_id,
            )
        )

    async def get_deal(self, deal_id: str) -> DealRead:
        deal = await self._repo.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError(f"Deal not found: {deal_id}")
        return deal

    # ── Deal CRUD ───────────────────────────────────────────────────────────

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        return await self._repo.list_deals(filters)

    async def create_deal(self, data: DealCreate, user_id: str | None = None) -> DealRead:
        deal = await self._repo.create_deal(data, created_by=user_id)
        await self._log(
            deal.id,
            DealActivityType.DEAL_CREATED,
            "deal",
            entity_id=deal.id,
            metadata={"company_name": deal.company_name},
            user_id=user_id,
        )
        return deal

    async def update_deal(
        self, deal_id: str, data: DealUpdate, user_id: str | None = None
    ) -> DealRead:
        try:
            deal = await self._repo.update_deal(deal_id, data)
        except ValueError as exc:
            raise DealNotFoundError(str(exc)) from exc
        await self._log(
            deal_id,
            DealActivityType.DEAL_UPDATED,
            "deal",
            entity_id=deal_id,
            metadata={"fields": sorted(data.model_dump(exclude_none=True))},
            user_id=user_id,
        )
        return deal

    # ── Workflow Phases ─────────────────────────────────────────────────────

    async def update_phase(self, deal_id: str, phase: WorkflowPhase) -> DealRead:
        await self.get_deal(deal_id)
        deal = await self._repo.update_fields(deal_id, {"workflow_phase": phase.value})
        logger.info("deal.phase_updated", deal_id=deal_id, phase=phase.value)
        return deal

    async def mark_milestone(
        self, deal_id: str, milestone: Milestone, at: datetime | None = None
    ) -> DealRead:
        await self.get_deal(deal_id)
        at = at or datetime.now(timezone.utc)
        return await self._repo.update_fields(deal_id, {milestone.value: at})

    async def publish_deal(self, deal_id: str) -> DealRead:
        """Move the deal live: workflow_phase=live_active, deal_published_at=now."""
        await self.get_deal(deal_id)
        deal = await self._repo.update_fields(
            deal_id, publish_changes(datetime.now(timezone.utc))
        )
        logger.info("deal.published", deal_id=deal_id)
        return deal

    # ── Stage Progression ───────────────────────────────────────────────────

    async def check_stage_triggers(self, deal_id: str) -> StageProgressionCheck:
        """check_deal_stage_triggers: evaluate the next stage's trigger."""
        deal = await self.get_deal(deal_id)
        requests = await self._repo.list_requests(deal_id)
        return self._engine.check_triggers(deal, request_completion(requests))

    async def progress_stage(
        self,
        deal_id: str,
        new_stage: DealStage,
        triggered_by: TriggeredBy = TriggeredBy.MANUAL,
        trigger_event: str | None = None,
        user_id: str | None = None,
    ) -> StageProgressionResult:
        """progress_deal_stage: validate, record history, move, and log.

        Raises:
            DealNotFoundError: Unknown deal.
            InvalidStageTransitionError: Same stage, or an automatic move
                that is not to the next stage.
        """
        deal = await self.get_deal(deal_id)
        old_stage = deal.current_stage
        self._engine.validate_transition(old_stage, new_stage, triggered_by)

        if triggered_by == TriggeredBy.MANUAL and trigger_event is None:
            trigger_event = "manual"

        await self._repo.apply_stage_transition(
            StageTransition(
                deal_id=deal_id,
                old_stage=old_stage,
                new_stage=new_stage,
                triggered_by=triggered_by,
                trigger_event=trigger_event,
                user_id=user_id,
                at=datetime.now(timezone.utc),
            )
        )
        await self._log(
            deal_id,
            DealActivityType.DEAL_STAGE_CHANGED,
            "deal",
            entity_id=deal_id,
            metadata={
                "old_stage": old_stage.value,
                "new_stage": new_stage.value,
                "triggered_by": triggered_by.value,
                "trigger_event": trigger_event,
            },
            user_id=user_id,
        )
        deal_stage_transitions_total.labels(
            to_stage=new_stage.value, triggered_by=triggered_by.value
        ).inc()
        logger.info(
            "deal_stage.progressed",
            deal_id=deal_id,
            old_stage=old_stage.value,
            new_stage=new_stage.value,
            triggered_by=triggered_by.value,
            trigger_event=trigger_event,
        )
        return StageProgressionResult(success=True, old_stage=old_stage, new_stage=new_stage)

    async def progress_to_next(
        self, deal_id: str, user_id: str | None = None
    ) -> StageProgressionResult | None:
        """Manually advance one stage; no-op (None) at the last stage."""
        deal = await self.get_deal(deal_id)
        next_stage = self._engine.get_next_stage(deal.current_stage)
        if next_stage is None:
            return None
        return await self.progress_stage(
            deal_id, next_stage, TriggeredBy.MANUAL, user_id=user_id
        )

    async def apply_auto_progression(self, deal_id: str) -> StageProgressionResult | None:
        """Run the trigger check and progress automatically when it fires."""
        check = await self.check_stage_triggers(deal_id)
        if not check.should_progress or check.suggested_stage is None:
            return None
        return await self.progress_stage(
            deal_id,
            check.suggested_stage,
            TriggeredBy.AUTO,
            trigger_event=check.trigger_event,
        )

    async def set_timestamp(
        self, deal_id: str, field: DealTimestamp, value: datetime | None
    ) -> tuple[DealRead, StageProgressionResult | None]:
        """Set or clear a buy-side timestamp, then apply any due progression."""
        await self.get_deal(deal_id)
        await self._repo.update_fields(deal_id, {field.value: value})
        progression = await self.apply_auto_progression(deal_id)
        return await self.get_deal(deal_id), progression

    async def record_first_nda(
        self, deal_id: str, signed_at: datetime, user_id: str | None = None
    ) -> bool:
        """Record an NDA signature on the deal.

        Sets first_nda_signed_at only if it is still empty, logs nda_signed
        either way, and applies any due progression. Returns True when this
        was the deal's first NDA.
        """
        deal = await self.get_deal(deal_id)
        first = deal.first_nda_signed_at is None
        if first:
            await self._repo.update_fields(deal_id, {"first_nda_signed_at": signed_at})
        await self._log(
            deal_id,
            DealActivityType.NDA_SIGNED,
            "nda",
            metadata={"first": first},
            user_id=user_id,
        )
        await self.apply_auto_progression(deal_id)
        return first

    # ── Diligence Requests ──────────────────────────────────────────────────

    async def create_request(
        self, deal_id: str, data: DealRequestCreate, user_id: str | None = None
    ) -> DealRequestRead:
        await self.get_deal(deal_id)
        req = await self._repo.create_request(deal_id, data, asked_by=user_id)
        await self._log(
            deal_id,
            DealActivityType.REQUEST_CREATED,
            "request",
            entity_id=req.id,
            metadata={"title": req.title},
            user_id=user_id,
        )
        return req

    async def update_request(
        self,
        deal_id: str,
        request_id: str,
        data: DealRequestUpdate,
        user_id: str | None = None,
    ) -> DealRequestRead:
        existing = await self._repo.get_request(request_id)
        if existing is None or existing.deal_id != deal_id:
            raise ValueError(f"Request not found: {request_id}")

        updated = await self._repo.update_request(request_id, data)
        status_changed = data.status is not None and data.status != existing.status

        if status_changed:
            await self._log(
                deal_id,
                DealActivityType.REQUEST_STATUS_CHANGED,
                "request",
                entity_id=request_id,
                metadata={
                    "title": updated.title,
                    "old_status": existing.status.value,
                    "new_status": updated.status.value,
                },
                user_id=user_id,
            )
            if updated.status == RequestStatus.CLOSED:
                await self._log(
                    deal_id,
                    DealActivityType.REQUEST_COMPLETED,
                    "request",
                    entity_id=request_id,
                    metadata={"title": updated.title},
                    user_id=user_id,
                )
            await self.apply_auto_progression(deal_id)
        else:
            await self._log(
                deal_id,
                DealActivityType.REQUEST_UPDATED,
                "request",
                entity_id=request_id,
                metadata={"title": updated.title},
                user_id=user_id,
            )
        return updated

    async def list_requests(self, deal_id: str) -> list[DealRequestRead]:
        await self.get_deal(deal_id)
        return await self._repo.list_requests(deal_id)

    async def request_summary(self, deal_id: str) -> RequestSummary:
        return summarize_requests(await self.list_requests(deal_id))

    async def get_stage_history(self, deal_id: str) -> list[StageHistoryRead]:
        await self.get_deal(deal_id)
        return await self._repo.get_stage_history(deal_id)
