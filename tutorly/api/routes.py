from __future__ import annotations

import inspect
from collections.abc import Sequence
from datetime import date
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from tutorly.api.deps import get_container, get_dashboard
from tutorly.api.schemas import (
    AccrualRunRequest,
    BookingPatch,
    ConflictCheckRequest,
    ScheduleUpdate,
    StudentPatch,
)
from tutorly.core.container import AppContainer
from tutorly.domain.errors import (
    CannotDeleteRecurringError,
    DuplicateIdError,
    InvalidChangeError,
    ReservedIdError,
    StudentNotFoundError,
    UnknownTemplateError,
)
from tutorly.domain.models import OneOffBooking, RecurringException, Student, Transaction
from tutorly.services.dashboard_service import DashboardService

logger = structlog.get_logger(__name__)
router = APIRouter()


def _dump(items: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


@router.get("/health/live")
async def health_live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready(container: AppContainer = Depends(get_container)) -> dict[str, str]:
    try:
        ping_result = container.redis.ping()
        if inspect.isawaitable(ping_result):
            await ping_result
    except Exception as exc:
        logger.exception("health.ready_failed", error=str(exc))
        raise HTTPException(status_code=503, detail="dependencies unavailable") from exc
    return {"status": "ready"}


@router.get("/occurrences")
async def list_occurrences(
    start: date | None = None,
    end: date | None = None,
    dashboard: DashboardService = Depends(get_dashboard),
) -> list[dict[str, Any]]:
    return _dump(dashboard.get_all_occurrences(start, end))


@router.post("/conflicts")
async def check_conflicts(
    payload: ConflictCheckRequest,
    dashboard: DashboardService = Depends(get_dashboard),
) -> list[dict[str, Any]]:
    return _dump(dashboard.detect_conflicts(payload.candidate_slots, payload.exclude_student_id))


@router.get("/suggestions")
async def suggest_slots(
    day: int = Query(ge=0, le=6),
    duration: float = Query(default=1.0, gt=0),
    dashboard: DashboardService = Depends(get_dashboard),
) -> list[dict[str, Any]]:
    return _dump(dashboard.suggest_available_slots(day, duration))


@router.post("/accrual/run")
async def run_accrual(
    payload: AccrualRunRequest | None = Body(default=None),
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, object]:
    result = await dashboard.run_accrual_pass(payload.now if payload is not None else None)
    return {
        "newTransactions": _dump(result.new_transactions),
        "updatedProcessedKeys": sorted(result.processed_keys),
    }


@router.post("/bookings", status_code=201)
async def create_booking(
    booking: OneOffBooking,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, Any]:
    try:
        created = await dashboard.add_booking(booking)
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ReservedIdError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return created.model_dump(mode="json", by_alias=True)


@router.patch("/bookings/{booking_id}")
async def update_booking(
    booking_id: str,
    patch: BookingPatch,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    try:
        await dashboard.update_booking(booking_id, patch.model_dump(exclude_unset=True))
    except InvalidChangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"status": "ok"}


@router.delete("/bookings/{booking_id}")
async def delete_booking(
    booking_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    try:
        await dashboard.delete_booking(booking_id)
    except CannotDeleteRecurringError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"status": "deleted"}


@router.post("/exceptions", status_code=201)
async def create_exception(
    exception: RecurringException,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, Any]:
    try:
        created = await dashboard.add_exception(exception)
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return created.model_dump(mode="json", by_alias=True)


@router.delete("/exceptions/{exception_id}")
async def delete_exception(
    exception_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    await dashboard.remove_exception(exception_id)
    return {"status": "deleted"}


@router.get("/students")
async def list_students(dashboard: DashboardService = Depends(get_dashboard)) -> list[dict[str, Any]]:
    return _dump(dashboard.state.students)


@router.post("/students", status_code=201)
async def create_student(
    student: Student,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, Any]:
    try:
        created = await dashboard.add_student(student)
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return created.model_dump(mode="json", by_alias=True)


@router.patch("/students/{student_id}")
async def update_student(
    student_id: str,
    patch: StudentPatch,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    try:
        await dashboard.update_student(student_id, patch.model_dump(exclude_unset=True))
    except StudentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidChangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"status": "ok"}


@router.put("/students/{student_id}/schedule")
async def replace_schedule(
    student_id: str,
    payload: ScheduleUpdate,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    try:
        if payload.template:
            await dashboard.apply_template(student_id, payload.template)
        else:
            await dashboard.set_weekly_schedule(student_id, payload.slots)
    except StudentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UnknownTemplateError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"status": "ok"}


@router.delete("/students/{student_id}")
async def delete_student(
    student_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    await dashboard.remove_student(student_id)
    return {"status": "deleted"}


@router.get("/transactions")
async def list_transactions(dashboard: DashboardService = Depends(get_dashboard)) -> list[dict[str, Any]]:
    return _dump(dashboard.state.transactions)


@router.post("/transactions", status_code=201)
async def create_transaction(
    transaction: Transaction,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, Any]:
    try:
        created = await dashboard.add_transaction(transaction)
    except DuplicateIdError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return created.model_dump(mode="json", by_alias=True)


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    await dashboard.remove_transaction(transaction_id)
    return {"status": "deleted"}


@router.get("/earnings/summary")
async def earnings_summary(dashboard: DashboardService = Depends(get_dashboard)) -> dict[str, Any]:
    return dashboard.earnings_summary().model_dump(mode="json", by_alias=True)
