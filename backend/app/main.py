"""FastAPI application entrypoints for the flowchart interpreter.

This module exposes HTTP endpoints used by the block editor and tests. It keeps
handlers intentionally small: each `/run` request rebuilds its own blocks from
the JSON body and constructs a fresh `AlgorithmExecutor`, so concurrent
requests never share an environment or a block's `has_error` flag. Server-side
caps are enforced to prevent clients from overriding resource limits.
"""

import logging
import math
import os
import time
from dataclasses import asdict
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from fastapi import FastAPI
from pydantic import BaseModel, Field

from ..flowchart.blocks import Assignment, Block, IfBlock, VarDecl
from ..flowchart.evaluator import EvalError, evaluate
from ..flowchart.executor import AlgorithmExecutor

logger = logging.getLogger(__name__)

app = FastAPI(title="Flowchart API", version="0.1")

# Server-wide ceiling for block list length; clients may only lower it.
MAX_BLOCKS = int(os.environ.get("FLOWCHART_MAX_BLOCKS", "10000"))


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Enforce server-side safe caps for runtime tunables.

    Clients may include a `settings` object with per-run tunables. The server
    must not trust these; the client's requested values are applied only up
    to the server ceiling, and never below zero.

    Returns a dict of keyword arguments for `AlgorithmExecutor`.
    """
    safe = {"max_blocks": MAX_BLOCKS}
    if not settings:
        return safe
    requested = int(settings.get("max_blocks", MAX_BLOCKS))
    return {"max_blocks": max(0, min(requested, MAX_BLOCKS))}


def _json_number(value: float) -> Union[float, str]:
    """JSON has no infinities or NaN; report them as strings."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


class VarDeclModel(BaseModel):
    kind: Literal["var_decl"] = "var_decl"
    names: str = ""
    has_error: bool = False

    def to_block(self) -> VarDecl:
        return VarDecl(names=self.names)


class AssignmentModel(BaseModel):
    kind: Literal["assignment"] = "assignment"
    var_name: str = ""
    expression: str = ""
    has_error: bool = False

    def to_block(self) -> Assignment:
        return Assignment(var_name=self.var_name, expression=self.expression)


class IfBlockModel(BaseModel):
    kind: Literal["if"] = "if"
    left_expr: str = ""
    op: str = ""
    right_expr: str = ""
    has_error: bool = False

    def to_block(self) -> IfBlock:
        return IfBlock(left_expr=self.left_expr, op=self.op, right_expr=self.right_expr)


BlockModel = Annotated[Union[VarDeclModel, AssignmentModel, IfBlockModel], Field(discriminator="kind")]

_KINDS = {VarDecl: "var_decl", Assignment: "assignment", IfBlock: "if"}


def block_to_dict(block: Block) -> Dict[str, Any]:
    data = {"kind": _KINDS[type(block)]}
    data.update(asdict(block))
    return data


class RunRequest(BaseModel):
    """Pydantic model for the `/run` request body.

    Fields:
        blocks: ordered block list, each tagged with its `kind`.
        settings: optional runtime tunables; will be capped server-side.
    """
    blocks: List[BlockModel] = Field(default_factory=list)
    settings: Optional[Dict[str, Any]] = None


class EvaluateRequest(BaseModel):
    expression: str
    variables: Dict[str, float] = Field(default_factory=dict)


@app.post("/run")
async def run_blocks(req: RunRequest):
    """Run a block list and report the environment and per-block flags.

    Any unexpected exception is turned into a SERVER_ERROR response so
    callers always receive the same JSON shape.
    """
    start = time.time()
    blocks = [b.to_block() for b in req.blocks]
    try:
        executor = AlgorithmExecutor(**_cap_settings(req.settings or {}))
        result = executor.execute(blocks)
    except Exception as e:
        logger.exception("run failed")
        return {
            "variables": {},
            "blocks": [block_to_dict(b) for b in blocks],
            "errors": {"code": "SERVER_ERROR", "message": str(e)},
            "steps": 0,
            "skipped": [],
            "duration_ms": int((time.time() - start) * 1000),
        }
    return {
        "variables": {k: _json_number(v) for k, v in result.variables.items()},
        "blocks": [block_to_dict(b) for b in blocks],
        "errors": result.error,
        "steps": result.steps,
        "skipped": result.skipped,
        "duration_ms": int((time.time() - start) * 1000),
    }


@app.post("/evaluate")
async def evaluate_expression(req: EvaluateRequest):
    try:
        value = evaluate(req.expression, req.variables)
    except EvalError as e:
        return {"value": None, "errors": e.to_dict()}
    return {"value": _json_number(value), "errors": None}


@app.get("/health")
async def health():
    return {"status": "ok"}
