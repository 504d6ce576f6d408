"""Public package interface for the UCI adapter."""

from .adapter import UCIAdapter, is_move
from .background import (
    BackgroundCommand,
    BackgroundTask,
    GoCommand,
    PerftCommand,
    RegisterCommand,
    TaskState,
    TestCommand,
)
from .config import AdapterConfig, ConfigRegistry
from .engine import START_FEN, ChessEngine, SearchControl
from .main import engine_main
from .models import GoParams, SearchStats, StopReason
from .move_finder import MoveFinder
from .options import EngineOption, OptionType
from .output import Output
from .simple_engine import SimpleEngine
from .tokens import CommandTokens, TokenError
from .watchdog import Watchdog

__all__ = [
    "AdapterConfig",
    "BackgroundCommand",
    "BackgroundTask",
    "ChessEngine",
    "CommandTokens",
    "ConfigRegistry",
    "EngineOption",
    "GoCommand",
    "GoParams",
    "MoveFinder",
    "OptionType",
    "Output",
    "PerftCommand",
    "RegisterCommand",
    "START_FEN",
    "SearchControl",
    "SearchStats",
    "SimpleEngine",
    "StopReason",
    "TaskState",
    "TestCommand",
    "TokenError",
    "UCIAdapter",
    "Watchdog",
    "engine_main",
    "is_move",
]
