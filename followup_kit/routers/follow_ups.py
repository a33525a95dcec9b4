"""Follow-up API routes: availability, auto-replies, inspection and scheduler control."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from ..core.config import get_settings
from ..core.limits import limiter
from ..followups import schemas
from ..followups.errors import FollowUpNotFoundError
from ..followups.runtime import FollowUpRuntime

router = APIRouter(tags=["follow-ups"])


def get_runtime(request: Request) -> FollowUpRuntime:
    runtime = getattr(request.app.state, "follow_ups", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Follow-up runtime not initialised")
    return runtime


def _trigger_limit() -> str:
    return get_settings().trigger_rate_limit


@router.get("/api/availability", response_model=schemas.AvailabilityResponse)
def availability(runtime: FollowUpRuntime = Depends(get_runtime)) -> schemas.AvailabilityResponse:
    return runtime.service.availability_report()


@router.post("/api/chat/auto-reply", response_model=schemas.AutoReplyResponse)
def auto_reply(
    payload: schemas.AutoReplyRequest,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.AutoReplyResponse:
    """Send the away message and register a follow-up when the operator is absent."""
    return runtime.service.handle_auto_reply(payload)


@router.get("/api/follow-ups/analytics", response_model=schemas.FollowUpAnalytics)
def analytics(
    timeframe: schemas.Timeframe = "7d",
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.FollowUpAnalytics:
    return runtime.service.analytics(timeframe)


@router.get("/api/follow-ups/scheduler", response_model=schemas.SchedulerStatus)
def scheduler_status(runtime: FollowUpRuntime = Depends(get_runtime)) -> schemas.SchedulerStatus:
    return runtime.scheduler.status()


@router.post("/api/follow-ups/scheduler/trigger", response_model=schemas.DispatchSummary)
@limiter.limit(_trigger_limit)
def trigger_dispatch(
    request: Request,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.DispatchSummary:
    """Run one dispatch pass in the request thread."""
    return runtime.scheduler.trigger_once()


@router.post("/api/follow-ups/scheduler/start", response_model=schemas.SchedulerStatus)
def start_scheduler(runtime: FollowUpRuntime = Depends(get_runtime)) -> schemas.SchedulerStatus:
    runtime.scheduler.start()
    return runtime.scheduler.status()


@router.post("/api/follow-ups/scheduler/stop", response_model=schemas.SchedulerStatus)
def stop_scheduler(runtime: FollowUpRuntime = Depends(get_runtime)) -> schemas.SchedulerStatus:
    runtime.scheduler.stop()
    return runtime.scheduler.status()


@router.get("/api/follow-ups/{follow_up_id}", response_model=schemas.FollowUpRecord)
def get_follow_up(
    follow_up_id: UUID,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.FollowUpRecord:
    try:
        return runtime.service.get(follow_up_id)
    except FollowUpNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/api/follow-ups/{follow_up_id}/cancel", response_model=schemas.FollowUpRecord)
def cancel_follow_up(
    follow_up_id: UUID,
    payload: Optional[schemas.CancelRequest] = None,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.FollowUpRecord:
    try:
        cancelled = runtime.service.cancel(follow_up_id, payload.reason if payload else None)
        record = runtime.service.get(follow_up_id)
    except FollowUpNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not cancelled:
        raise HTTPException(
            status_code=409,
            detail=f"Follow-up {follow_up_id} is {record.status.value}, not pending",
        )
    return record


@router.get(
    "/api/conversations/{conversation_id}/follow-ups",
    response_model=List[schemas.FollowUpRecord],
)
def list_conversation_follow_ups(
    conversation_id: UUID,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> List[schemas.FollowUpRecord]:
    return runtime.service.list_for_conversation(conversation_id)


@router.post(
    "/api/conversations/{conversation_id}/follow-ups/cancel",
    response_model=schemas.CancelResponse,
)
def cancel_conversation_follow_ups(
    conversation_id: UUID,
    payload: Optional[schemas.CancelRequest] = None,
    runtime: FollowUpRuntime = Depends(get_runtime),
) -> schemas.CancelResponse:
    if payload and payload.reason:
        count = runtime.service.cancel_for_conversation(conversation_id, payload.reason)
    else:
        count = runtime.service.cancel_for_conversation(conversation_id)
    return schemas.CancelResponse(cancelled=count)
