from __future__ import annotations

import dataclasses
from typing import List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt

from screwtape.brackets import resolve_brackets
from screwtape.debugger import StepDebugger
from screwtape.errors import InvalidTapeInput, StepLimitExceeded, UnmatchedBracket
from screwtape.interpreter import ExecutionState, ScrewtapeInterpreter

from .registry import DebuggerEntry, DebuggerRegistry

# Upper bound on instructions for one-shot runs.
EXECUTE_STEP_BUDGET = 100_000
# Steps spent measuring a program's length when a debugger is opened.
MEASURE_STEP_BUDGET = 10_000


def _cell_bounds(wrap: bool) -> Tuple[Optional[int], Optional[int]]:
    return (0, 255) if wrap else (None, None)


def _measure_steps(code: str, budget: int, wrap: bool = False) -> Tuple[int, bool]:
    """Count the instructions ``code`` takes to halt, up to ``budget``."""
    cell_min, cell_max = _cell_bounds(wrap)
    interpreter = ScrewtapeInterpreter(cell_min=cell_min, cell_max=cell_max)
    try:
        interpreter.execute(code, max_steps=budget)
    except StepLimitExceeded:
        return budget, True
    return interpreter.steps_taken, False


class ProgramRequest(BaseModel):
    code: str


class ExecuteRequest(ProgramRequest):
    tape: Optional[List[StrictInt]] = None
    max_steps: int = Field(default=EXECUTE_STEP_BUDGET, ge=1)
    wrap: bool = False


class ExecuteResponse(BaseModel):
    output: str
    tape: List[int]
    pointer_value: int
    steps: int


class LoopPairsResponse(BaseModel):
    pairs: List[Tuple[int, int]]


class DebuggerRequest(ProgramRequest):
    max_steps: int = Field(default=EXECUTE_STEP_BUDGET, ge=1)
    tape_window: int = Field(default=8, ge=0)
    trace_limit: int = Field(default=200, ge=1)
    wrap: bool = False


class StateModel(BaseModel):
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int

    @classmethod
    def of(cls, state: ExecutionState) -> "StateModel":
        return cls(**dataclasses.asdict(state))


class DebuggerView(BaseModel):
    debugger_id: str
    code: str
    state: StateModel
    halted: bool
    stopped_at: Optional[int]
    breakpoints: List[int]
    loop_pairs: List[Tuple[int, int]]
    trace_size: int
    total_steps: int
    total_steps_capped: bool


class AdvanceRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class ResumeRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)


class AdvanceResponse(BaseModel):
    debugger: DebuggerView
    states: List[StateModel]


class PartnerResponse(BaseModel):
    debugger: DebuggerView
    target: int


def _view(entry: DebuggerEntry) -> DebuggerView:
    debugger = entry.debugger
    return DebuggerView(
        debugger_id=entry.debugger_id,
        code=debugger.program,
        state=StateModel.of(debugger.state),
        halted=debugger.halted,
        stopped_at=debugger.stopped_at,
        breakpoints=sorted(debugger.breakpoints),
        loop_pairs=debugger.loop_pairs(),
        trace_size=len(debugger.trace),
        total_steps=entry.total_steps,
        total_steps_capped=entry.total_steps_capped,
    )


def _lookup(debugger_id: str, request: Request) -> DebuggerEntry:
    registry: DebuggerRegistry = request.app.state.registry
    try:
        return registry.lookup(debugger_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown debugger id: {debugger_id}",
        ) from exc


def create_app(registry: Optional[DebuggerRegistry] = None) -> FastAPI:
    app = FastAPI(title="Screwtape API", version="0.1.0")
    app.state.registry = registry or DebuggerRegistry()

    @app.exception_handler(UnmatchedBracket)
    def unmatched_bracket(request: Request, exc: UnmatchedBracket) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "index": exc.index, "kind": exc.kind},
        )

    @app.exception_handler(InvalidTapeInput)
    def invalid_tape(request: Request, exc: InvalidTapeInput) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(StepLimitExceeded)
    def step_limit(request: Request, exc: StepLimitExceeded) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.post("/api/execute", response_model=ExecuteResponse)
    def execute_program(payload: ExecuteRequest) -> ExecuteResponse:
        cell_min, cell_max = _cell_bounds(payload.wrap)
        interpreter = ScrewtapeInterpreter(cell_min=cell_min, cell_max=cell_max)
        if payload.tape is not None:
            interpreter.set_tape(payload.tape)
        output = interpreter.execute(payload.code, max_steps=payload.max_steps)
        return ExecuteResponse(
            output=output,
            tape=interpreter.tape_data(),
            pointer_value=interpreter.pointer_value(),
            steps=interpreter.steps_taken,
        )

    @app.post("/api/loops", response_model=LoopPairsResponse)
    def loop_pairs(payload: ProgramRequest) -> LoopPairsResponse:
        table = resolve_brackets(payload.code)
        return LoopPairsResponse(pairs=sorted(table.forward.items()))

    @app.post(
        "/api/debuggers",
        response_model=DebuggerView,
        status_code=status.HTTP_201_CREATED,
    )
    def open_debugger(payload: DebuggerRequest, request: Request) -> DebuggerView:
        cell_min, cell_max = _cell_bounds(payload.wrap)
        debugger = StepDebugger(
            payload.code,
            max_steps=payload.max_steps,
            tape_window=payload.tape_window,
            trace_limit=payload.trace_limit,
            cell_min=cell_min,
            cell_max=cell_max,
        )
        budget = min(payload.max_steps, MEASURE_STEP_BUDGET)
        total_steps, capped = _measure_steps(payload.code, budget, payload.wrap)
        entry = request.app.state.registry.open(
            debugger,
            total_steps=total_steps,
            total_steps_capped=capped,
        )
        return _view(entry)

    @app.get("/api/debuggers/{debugger_id}", response_model=DebuggerView)
    def show_debugger(entry: DebuggerEntry = Depends(_lookup)) -> DebuggerView:
        return _view(entry)

    @app.post("/api/debuggers/{debugger_id}/advance", response_model=AdvanceResponse)
    def advance(payload: AdvanceRequest, entry: DebuggerEntry = Depends(_lookup)) -> AdvanceResponse:
        states = entry.debugger.advance(payload.count)
        return AdvanceResponse(debugger=_view(entry), states=[StateModel.of(s) for s in states])

    @app.post("/api/debuggers/{debugger_id}/resume", response_model=AdvanceResponse)
    def resume(payload: ResumeRequest, entry: DebuggerEntry = Depends(_lookup)) -> AdvanceResponse:
        states = entry.debugger.resume(payload.limit)
        return AdvanceResponse(debugger=_view(entry), states=[StateModel.of(s) for s in states])

    @app.post("/api/debuggers/{debugger_id}/rewind", response_model=DebuggerView)
    def rewind(entry: DebuggerEntry = Depends(_lookup)) -> DebuggerView:
        entry.debugger.rewind()
        return _view(entry)

    @app.put("/api/debuggers/{debugger_id}/breakpoints/{pc}", response_model=DebuggerView)
    def set_breakpoint(pc: int, entry: DebuggerEntry = Depends(_lookup)) -> DebuggerView:
        try:
            entry.debugger.break_at(pc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return _view(entry)

    @app.put("/api/debuggers/{debugger_id}/partners/{pc}", response_model=PartnerResponse)
    def set_partner_breakpoint(pc: int, entry: DebuggerEntry = Depends(_lookup)) -> PartnerResponse:
        try:
            target = entry.debugger.break_on_partner(pc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return PartnerResponse(debugger=_view(entry), target=target)

    @app.delete("/api/debuggers/{debugger_id}/breakpoints/{pc}", response_model=DebuggerView)
    def clear_breakpoint(pc: int, entry: DebuggerEntry = Depends(_lookup)) -> DebuggerView:
        if not entry.debugger.clear(pc):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No breakpoint at pc={pc}",
            )
        return _view(entry)

    @app.delete("/api/debuggers/{debugger_id}", status_code=status.HTTP_204_NO_CONTENT)
    def close_debugger(debugger_id: str, request: Request) -> Response:
        if not request.app.state.registry.close(debugger_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown debugger id: {debugger_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
