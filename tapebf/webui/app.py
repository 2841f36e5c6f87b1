from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator

from tapebf.errors import StepLimitExceeded, UnbalancedBrackets
from tapebf.interpreter import ExecutionState, TapeInterpreter
from tapebf.machine import LoopMode
from tapebf.parser import format_program, parse, to_input_cells
from tapebf.visualizer import VisualizerSession

from .session import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

UNBALANCED_LOOP_DETAIL = "Unbalanced loop: no matching loop start before loop end"


def _state_to_dict(state: ExecutionState) -> dict:
    return {
        "step": state.step,
        "pc": state.pc,
        "command": state.command,
        "state": state.state,
        "depth": state.depth,
        "pointer": state.pointer,
        "tape_start": state.tape_start,
        "tape": list(state.tape),
        "output": list(state.output),
        "code_length": state.code_length,
        "faulted": state.faulted,
    }


def _calculate_total_steps(
    code: str,
    input_template: List[int],
    loop_mode: LoopMode,
    max_steps: Optional[int] = None,
    cap: int = 10000,
) -> tuple[int, bool]:
    if max_steps is not None:
        cap = min(cap, max_steps)
    interpreter = TapeInterpreter(loop_mode=loop_mode)
    total = 0
    try:
        for state in interpreter.step(parse(code), input_data=list(input_template), max_steps=cap):
            total = state.step
    except StepLimitExceeded:
        return cap, True
    return total, False


class SessionConfiguration(BaseModel):
    code: str = ""
    input: str = ""
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)
    mode: str = LoopMode.DO_WHILE.value
    strict: bool = False

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in {mode.value for mode in LoopMode}:
            raise ValueError("mode must be either 'do-while' or 'classic'")
        return normalized


class SessionState(BaseModel):
    step: int
    pc: int
    command: Optional[str]
    state: str
    depth: Optional[int]
    pointer: int
    tape_start: int
    tape: List[int]
    output: List[int]
    code_length: int
    faulted: bool


class SessionPayload(BaseModel):
    session_id: str
    mode: str
    code: str
    state: SessionState
    history: List[SessionState]
    finished: bool
    faulted: bool
    history_size: int
    breakpoints: List[int]
    hit_breakpoint: Optional[int]
    total_steps: int
    total_steps_capped: bool


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class StepResponse(SessionPayload):
    states: List[SessionState]


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store if store is not None else SessionStore()
    app = FastAPI(title="tapebf debugger API", version="0.1.0")

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _serialize_states(states: List[ExecutionState]) -> List[SessionState]:
        return [SessionState(**_state_to_dict(state)) for state in states]

    def _payload_fields(record: SessionRecord) -> dict:
        session = record.session
        return dict(
            session_id=record.session_id,
            mode=session.loop_mode.value,
            code=format_program(session.program),
            state=SessionState(**_state_to_dict(session.current_state())),
            history=_serialize_states(session.history),
            finished=session.is_finished(),
            faulted=session.is_faulted(),
            history_size=len(session.history),
            breakpoints=session.list_breakpoints(),
            hit_breakpoint=session.hit_breakpoint,
            total_steps=record.total_steps,
            total_steps_capped=record.total_steps_capped,
        )

    def _advance(record: SessionRecord, session: VisualizerSession, states: List[ExecutionState]) -> StepResponse:
        if session.is_faulted():
            logger.info("session %s hit an unbalanced loop", record.session_id)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=UNBALANCED_LOOP_DETAIL)
        return StepResponse(states=_serialize_states(states), **_payload_fields(record))

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        loop_mode = LoopMode(payload.mode)
        input_cells = to_input_cells(payload.input)
        try:
            record = session_store.create_session(
                code=payload.code,
                input_template=input_cells,
                tape_window=payload.tape_window,
                max_steps=payload.max_steps,
                history_limit=payload.history_limit,
                loop_mode=loop_mode,
                strict=payload.strict,
            )
        except UnbalancedBrackets as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc
        record.total_steps, record.total_steps_capped = _calculate_total_steps(
            payload.code,
            input_cells,
            loop_mode,
            payload.max_steps,
        )
        logger.debug("created session %s", record.session_id)
        return SessionPayload(**_payload_fields(record))

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return SessionPayload(**_payload_fields(_get_record(session_id)))

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        try:
            record = session_store.reset(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return SessionPayload(**_payload_fields(record))

    @app.post("/api/session/{session_id}/step", response_model=StepResponse)
    def step_session(session_id: str, payload: StepRequest) -> StepResponse:
        record = _get_record(session_id)
        session = record.session
        try:
            states = list(session.step_forward(payload.count))
        except StepLimitExceeded as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _advance(record, session, states)

    @app.post("/api/session/{session_id}/run", response_model=StepResponse)
    def run_session(session_id: str, payload: RunRequest) -> StepResponse:
        record = _get_record(session_id)
        session = record.session
        original_breakpoints: Optional[set[int]] = None
        if payload.ignore_breakpoints:
            original_breakpoints = set(session.breakpoints)
            session.clear_breakpoints()
            session.hit_breakpoint = None

        try:
            states = list(session.run_until_break(payload.limit))
        except StepLimitExceeded as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        finally:
            if original_breakpoints is not None:
                session.breakpoints = original_breakpoints
                session.hit_breakpoint = None
        return _advance(record, session, states)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionPayload)
    def add_breakpoint(session_id: str, payload: BreakpointRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.session.add_breakpoint(payload.pc)
        return SessionPayload(**_payload_fields(record))

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionPayload)
    def remove_breakpoint(session_id: str, pc: int) -> SessionPayload:
        record = _get_record(session_id)
        if not record.session.remove_breakpoint(pc):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Breakpoint not found at pc={pc}",
            )
        return SessionPayload(**_payload_fields(record))

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        if not session_store.remove(session_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
