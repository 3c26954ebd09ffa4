from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from schedule_call.api.v1.schemas import (
    BookingDetailsSchema,
    PickDateRequestSchema,
    PickTimeRequestSchema,
    SessionResponseSchema,
)
from schedule_call.application.exceptions import BookingClosedError, InvalidTransitionError, ValidationError
from schedule_call.application.use_cases.booking import BookingStateMachine
from schedule_call.domain.entities.booking_details import BookingDetails
from schedule_call.infrastructure.store.memory_store import MemorySessionStore
from schedule_call.wiring.dependencies import get_booking_machine, get_session_store

router = APIRouter()
logger = logging.getLogger(__name__)


def _machine_or_404(session_id: str, store: MemorySessionStore) -> BookingStateMachine:
    machine = store.get(session_id)
    if machine is None or not machine.is_open:
        raise HTTPException(status_code=404, detail="Booking session not found")
    return machine


def _respond(session_id: str, machine: BookingStateMachine) -> SessionResponseSchema:
    return SessionResponseSchema.from_session(session_id, machine.session, machine.today())


@router.post("/sessions", response_model=SessionResponseSchema, status_code=201)
async def open_session(
    store: MemorySessionStore = Depends(get_session_store),
    machine: BookingStateMachine = Depends(get_booking_machine),
):
    await machine.open()
    session_id = store.add(machine)
    logger.info("Booking session opened", extra={"session_id": session_id})
    return _respond(session_id, machine)


@router.get("/sessions/{session_id}", response_model=SessionResponseSchema)
def get_session(session_id: str, store: MemorySessionStore = Depends(get_session_store)):
    return _respond(session_id, _machine_or_404(session_id, store))


@router.delete("/sessions/{session_id}", status_code=204)
def close_session(session_id: str, store: MemorySessionStore = Depends(get_session_store)) -> Response:
    if not store.discard(session_id):
        raise HTTPException(status_code=404, detail="Booking session not found")
    logger.info("Booking session closed", extra={"session_id": session_id})
    return Response(status_code=204)


@router.post("/sessions/{session_id}/week/{direction}", response_model=SessionResponseSchema)
async def page_week(session_id: str, direction: str, store: MemorySessionStore = Depends(get_session_store)):
    machine = _machine_or_404(session_id, store)
    if direction == "next":
        await machine.next_week()
    elif direction == "previous":
        await machine.previous_week()
    else:
        raise HTTPException(status_code=400, detail="direction must be 'next' or 'previous'")
    return _respond(session_id, machine)


@router.post("/sessions/{session_id}/date", response_model=SessionResponseSchema)
async def pick_date(
    session_id: str,
    req: PickDateRequestSchema,
    store: MemorySessionStore = Depends(get_session_store),
):
    machine = _machine_or_404(session_id, store)
    try:
        await machine.pick_date(req.day)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BookingClosedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _respond(session_id, machine)


@router.post("/sessions/{session_id}/time", response_model=SessionResponseSchema)
def pick_time(
    session_id: str,
    req: PickTimeRequestSchema,
    store: MemorySessionStore = Depends(get_session_store),
):
    machine = _machine_or_404(session_id, store)
    try:
        machine.pick_slot(req.slot)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _respond(session_id, machine)


@router.post("/sessions/{session_id}/details", response_model=SessionResponseSchema)
async def submit_details(
    session_id: str,
    req: BookingDetailsSchema,
    store: MemorySessionStore = Depends(get_session_store),
):
    machine = _machine_or_404(session_id, store)
    try:
        await machine.submit(BookingDetails(name=req.name, email=req.email, purpose=req.purpose))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BookingClosedError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _respond(session_id, machine)


@router.post("/sessions/{session_id}/retry", response_model=SessionResponseSchema)
def retry(session_id: str, store: MemorySessionStore = Depends(get_session_store)):
    machine = _machine_or_404(session_id, store)
    try:
        machine.retry()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _respond(session_id, machine)


@router.post("/sessions/{session_id}/back", response_model=SessionResponseSchema)
def back(session_id: str, store: MemorySessionStore = Depends(get_session_store)):
    machine = _machine_or_404(session_id, store)
    machine.back()
    return _respond(session_id, machine)
