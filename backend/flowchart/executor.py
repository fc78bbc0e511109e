"""Executor that runs a list of flowchart blocks.

The executor walks the blocks in order over a single environment of
float variables. `VarDecl` inserts names at 0.0, `Assignment` overwrites a
declared name with the value of an expression and `IfBlock` compares two
expressions. A false condition skips exactly the following block; there is
no other control flow.

The first failure anywhere marks the current block with ``has_error = True``
and halts the run. The environment built so far is still returned, so a
caller can show partial results next to the highlighted block.
"""

import logging
import operator
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .blocks import Assignment, Block, IfBlock, VarDecl, reset_errors
from .evaluator import EvalError, evaluate

logger = logging.getLogger(__name__)

EMPTY_VARIABLE_LIST = "EMPTY_VARIABLE_LIST"
INVALID_VARIABLE_NAME = "INVALID_VARIABLE_NAME"
UNDECLARED_VARIABLE = "UNDECLARED_VARIABLE"
INVALID_COMPARISON_OPERATOR = "INVALID_COMPARISON_OPERATOR"
BLOCK_LIMIT = "BLOCK_LIMIT"

VARIABLE_NAME = re.compile(r"[a-zA-Z]+")

# "=" and "==" are both exact float equality.
COMPARISONS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    "<=": operator.le,
}


class BlockError(Exception):
    """Raised when a block is malformed independently of any expression.

    Attributes:
        code: stable machine-readable error kind (e.g. ``UNDECLARED_VARIABLE``)
        detail: the offending name or operator, when there is one
    """

    def __init__(self, code: str, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.detail is not None:
            err["detail"] = self.detail
        return err


@dataclass
class RunResult:
    """Outcome of one executor run.

    `error` is None on success, otherwise a dict with ``code``, ``message``
    and ``block`` (0-based index of the flagged block, or None when the run
    was refused before any block executed), plus ``column``/``text`` for
    expression errors and ``detail`` for the offending name, character or
    operator.
    """

    variables: Dict[str, float] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    steps: int = 0
    skipped: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed_block(self) -> Optional[int]:
        if self.error is None:
            return None
        return self.error.get("block")


def parse_names(names: str) -> List[str]:
    """Split and validate a `VarDecl` names string.

    Raises:
        BlockError: if no names are given or one is not letters-only.
    """
    tokens = [t.strip() for t in names.split(",")]
    tokens = [t for t in tokens if t]
    if not tokens:
        raise BlockError(EMPTY_VARIABLE_LIST, "No variable names given")
    for name in tokens:
        if not VARIABLE_NAME.fullmatch(name):
            raise BlockError(INVALID_VARIABLE_NAME, f"Invalid variable name: {name}", detail=name)
    return tokens


def compare(left: float, op: str, right: float) -> bool:
    symbol = op.strip()
    fn = COMPARISONS.get(symbol)
    if fn is None:
        raise BlockError(INVALID_COMPARISON_OPERATOR, f"Invalid comparison operator: {op}", detail=op)
    return fn(left, right)


class AlgorithmExecutor:
    """Runs block lists and reports which block, if any, failed.

    Tunable attributes:
    - max_blocks: longest block list accepted by a single run, None for no limit

    An executor keeps no state between runs, but the blocks it is given are
    mutated (their `has_error` flags), so the same list must not be run from
    two threads at once.
    """

    def __init__(self, max_blocks: Optional[int] = None):
        self.max_blocks = max_blocks

    def _handle_var_decl(self, block: VarDecl, env: Dict[str, float]) -> None:
        for name in parse_names(block.names):
            # re-declaring keeps the current value
            env.setdefault(name, 0.0)

    def _handle_assignment(self, block: Assignment, env: Dict[str, float]) -> None:
        name = block.var_name.strip()
        if name not in env:
            raise BlockError(UNDECLARED_VARIABLE, f"Variable '{name}' is not declared", detail=name)
        env[name] = evaluate(block.expression, env)

    def _handle_if(self, block: IfBlock, env: Dict[str, float]) -> bool:
        left = evaluate(block.left_expr, env)
        right = evaluate(block.right_expr, env)
        return compare(left, block.op, right)

    def _dispatch(self, block: Block, env: Dict[str, float]) -> bool:
        """Execute one block; return False only for a false condition."""
        if isinstance(block, VarDecl):
            self._handle_var_decl(block, env)
        elif isinstance(block, Assignment):
            self._handle_assignment(block, env)
        elif isinstance(block, IfBlock):
            return self._handle_if(block, env)
        else:
            raise TypeError(f"Unsupported block type: {type(block).__name__}")
        return True

    def execute(self, blocks: Sequence[Block]) -> RunResult:
        """Run `blocks` in order and return the environment with diagnostics.

        Clears every block's `has_error` flag first, then sets it on the
        block that fails, if any. Block errors never propagate out of this
        method; they are reported through the returned `RunResult`.
        """
        result = RunResult()
        reset_errors(blocks)
        if self.max_blocks is not None and len(blocks) > self.max_blocks:
            result.error = {
                "code": BLOCK_LIMIT,
                "message": f"Too many blocks: {len(blocks)} > {self.max_blocks}",
                "block": None,
            }
            return result

        env = result.variables
        i = 0
        while i < len(blocks):
            block = blocks[i]
            try:
                proceed = self._dispatch(block, env)
            except (EvalError, BlockError) as e:
                block.has_error = True
                result.error = dict(e.to_dict(), block=i)
                logger.info("run halted at block %d (%s): %s", i, e.code, e)
                break
            result.steps += 1
            logger.debug("block %d %s ok", i, type(block).__name__)
            if not proceed and i + 1 < len(blocks):
                i += 1
                result.skipped.append(i)
                logger.debug("condition false, skipping block %d", i)
            i += 1
        return result

    def run(self, blocks: Sequence[Block]) -> Dict[str, float]:
        """Run `blocks` and return the final environment.

        Failures are only visible through the `has_error` flags and the
        truncated environment; use `execute` for the error details.
        """
        return self.execute(blocks).variables


def run_algorithm(blocks: Sequence[Block]) -> Dict[str, float]:
    return AlgorithmExecutor().run(blocks)
