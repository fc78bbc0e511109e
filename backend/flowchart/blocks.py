"""Block types for flowchart algorithms.

An algorithm is an ordered list of blocks. There are exactly three kinds,
each a plain dataclass carrying the text an editor typed into it plus a
`has_error` flag that the executor sets on the block that stopped a run.
"""

from dataclasses import dataclass
from typing import Iterable, Union


@dataclass
class VarDecl:
    """Declares the comma-separated variable names in `names` (e.g. ``"x, y"``)."""

    names: str = ""
    has_error: bool = False


@dataclass
class Assignment:
    var_name: str = ""
    expression: str = ""
    has_error: bool = False


@dataclass
class IfBlock:
    """Compares two expressions; when false the next block is skipped."""

    left_expr: str = ""
    op: str = ""
    right_expr: str = ""
    has_error: bool = False


Block = Union[VarDecl, Assignment, IfBlock]


def reset_errors(blocks: Iterable[Block]) -> None:
    for block in blocks:
        block.has_error = False
