"""Value objects shared between the adapter and the engine collaborator."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class StopReason(enum.IntFlag):
    NONE = 0
    FULL_STOP = 0x1  # stop requested by the dispatcher or the user
    TIMEOUT = 0x2  # deadline reached, stop the current search only


@dataclass(frozen=True)
class GoParams:
    """Search bounds from a ``go`` command.  Zero means "not limited"."""

    infinite: bool = False
    ponder: bool = False
    depth: int = 0
    nodes: int = 0
    movestogo: int = 0
    movetime: int = 0
    wtime: int = 0
    btime: int = 0
    winc: int = 0
    binc: int = 0

    def time_left(self, white_to_move: bool) -> int:
        return max(0, self.wtime if white_to_move else self.btime)

    def increment(self, white_to_move: bool) -> int:
        return max(0, self.winc if white_to_move else self.binc)


def rate(count: float, msecs: float) -> float:
    """Per-second rate of ``count`` over ``msecs`` milliseconds."""
    return (count * 1000.0 / msecs) if msecs > 0 else 0.0


def percent(part: float, whole: float) -> float:
    return (100.0 * part / whole) if whole else 0.0


def average(total: float, count: int) -> float:
    return (total / count) if count else 0.0


@dataclass
class SearchStats:
    depth: int = 0
    seldepth: int = 0
    nodes: int = 0
    qnodes: int = 0
    msecs: int = 0
    movenum: int = 0
    move: Optional[str] = None

    @property
    def nps(self) -> int:
        return int(rate(self.nodes, self.msecs))

    def info_line(self) -> str:
        line = (
            f"info depth {self.depth} seldepth {self.seldepth} nodes {self.nodes} "
            f"time {self.msecs} nps {self.nps}"
        )
        if self.movenum > 0 and self.move:
            line += f" currmovenumber {self.movenum} currmove {self.move}"
        return line
