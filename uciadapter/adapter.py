"""UCI command dispatcher."""

from __future__ import annotations

import re
import sys
from typing import Callable, Dict, List, Optional, TextIO, Tuple, Type

from .background import (
    BackgroundCommand,
    BackgroundTask,
    GoCommand,
    PerftCommand,
    RegisterCommand,
    TestCommand,
)
from .engine import START_FEN, ChessEngine
from .output import ensure_line_buffered_stdout
from .tokens import CommandTokens, TokenError

MOVE_PATTERN = re.compile(r"^[a-h][1-8][a-h][1-8][nbrq]?$")

SETOPTION_USAGE = "setoption name <option_name> [value <option_value>]"
POSITION_USAGE = "position {startpos|fen <fen_string>} [<movelist>]"
NEW_USAGE = "new [startpos|fen <fen_string>] [moves] <movelist>"

# keyword -> (usage, description lines) for commands handled on the dispatcher thread
COMMAND_HELP: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "debug": ("debug [on|off]", ("Toggle debug mode.",)),
    "exit": ("exit", ("Stop engine and terminate program.",)),
    "fen": ("fen", ("Output FEN string of the current position.",)),
    "help": ("help", ("Output a list of available commands.",)),
    "isready": ("isready", ("Output readyok when engine is ready to receive input.",)),
    "new": (
        NEW_USAGE,
        (
            "Clear search data, set position, and apply <movelist>.",
            "If no position is specified startpos is assumed.",
        ),
    ),
    "opts": ("opts", ("Output current engine option values.",)),
    "ponderhit": ("ponderhit", ("The opponent played the expected move, keep searching.",)),
    "position": (POSITION_USAGE, ("Set a new position and apply <movelist> (if given).",)),
    "print": ("print", ("Output text representation of the current position.",)),
    "quit": ("quit", ("Stop engine and terminate program.",)),
    "setoption": (
        SETOPTION_USAGE,
        (
            "Set the value of the specified option name.",
            "If no value specified the option's default value is used,",
            "or the option will be triggered if it's a button option.",
        ),
    ),
    "stop": ("stop", ("Stop engine if it is calculating.",)),
    "uci": ("uci", ("Output engine info and options followed by uciok.",)),
    "ucinewgame": ("ucinewgame", ("Clear all search data.",)),
}

UCI_COMMANDS = ("debug", "go", "isready", "position", "quit", "setoption", "stop", "uci", "ucinewgame")
EXTRA_COMMANDS = ("exit", "fen", "help", "new", "opts", "perft", "print", "test")


def is_move(token: str) -> bool:
    return bool(MOVE_PATTERN.match(token))


class UCIAdapter:
    """Routes protocol lines to an engine.

    Mutating commands stop and join the previous background task before they
    touch the engine; ``isready``, ``fen`` and ``print`` only join.  The
    tokens of the last ``position`` line are remembered so that a GUI
    resending the game with one more move only costs one ``make_move``.
    """

    BACKGROUND_COMMANDS: Dict[str, Type[BackgroundCommand]] = {
        "go": GoCommand,
        "perft": PerftCommand,
        "register": RegisterCommand,
        "test": TestCommand,
    }

    def __init__(self, engine: ChessEngine) -> None:
        self.engine = engine
        self.output = engine.output
        self.running = True
        self.last_task: Optional[BackgroundTask] = None
        self.last_position: List[str] = []

        self.dispatch_table: Dict[str, Callable[[CommandTokens], None]] = {
            "debug": self.handle_debug,
            "exit": self.handle_quit,
            "fen": self.handle_fen,
            "go": self.handle_go,
            "help": self.handle_help,
            "isready": self.handle_isready,
            "new": self.handle_new,
            "opts": self.handle_opts,
            "perft": self.handle_perft,
            "ponderhit": self.handle_ponderhit,
            "position": self.handle_position,
            "print": self.handle_print,
            "quit": self.handle_quit,
            "register": self.handle_register,
            "setoption": self.handle_setoption,
            "stop": self.handle_stop,
            "test": self.handle_test,
            "uci": self.handle_uci,
            "ucinewgame": self.handle_ucinewgame,
        }

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def start(self, stream: Optional[TextIO] = None) -> None:
        ensure_line_buffered_stdout()
        self.command_loop(stream)

    def command_loop(self, stream: Optional[TextIO] = None) -> None:
        source = stream or sys.stdin
        while self.running:
            line = source.readline()
            if not line:
                self.shutdown()
                break
            try:
                self.handle_line(line)
            except Exception as exc:
                self.output.info(f"Error processing command: {exc}")

    def handle_line(self, line: str) -> bool:
        """Process one protocol line; False once the adapter should exit."""
        tokens = CommandTokens(line)
        if not tokens:
            return True
        if self.engine.is_debug_on():
            self.output.info(f"received command: {line.strip()}")

        keyword = tokens.popleft()
        name = keyword.lower()
        handler = self.dispatch_table.get(name)
        if handler is None:
            if is_move(keyword):
                tokens.appendleft(keyword)
                self.handle_moves(tokens)
            else:
                self.handle_unknown(keyword)
            return self.running

        if tokens.first_is("help"):
            self._print_usage(name)
            return True
        handler(tokens)
        return self.running

    def _print_usage(self, name: str) -> None:
        command_cls = self.BACKGROUND_COMMANDS.get(name)
        if command_cls is not None:
            command = command_cls(self.engine)
            lines = [f"usage: {command.usage()}", command.description()]
        else:
            usage, description = COMMAND_HELP[name]
            lines = [f"usage: {usage}", *description]
        with self.output.block():
            for line in lines:
                self.output.info(line)

    def _stop_last_task(self) -> None:
        if self.last_task is not None:
            self.last_task.stop()
            self.last_task.wait_for_finish()

    def _ensure_initialized(self) -> None:
        if not self.engine.is_initialized():
            self.engine.initialize()
            self.last_position = []

    def _join_last_task(self) -> None:
        self._ensure_initialized()
        if self.last_task is not None:
            # join without stopping
            self.last_task.wait_for_finish()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_unknown(self, keyword: str) -> None:
        self.output.info(f"Unknown command: '{keyword}'")
        self.output.info("Enter 'help' for a list of commands")

    def handle_help(self, _: CommandTokens) -> None:
        engine = self.engine
        lines = [f"{engine.engine_name()} {engine.engine_version()} by {engine.author_name()}", "UCI commands:"]
        lines.extend(f"  {name}" for name in UCI_COMMANDS)
        lines.append("Additional commands:")
        lines.extend(f"  {name}" for name in EXTRA_COMMANDS)
        lines.append("Also try '<command> help' for help on a specific command")
        lines.append("Or enter move(s) in coordinate notation, e.g. d2d4 g8f6")
        with self.output.block():
            for line in lines:
                self.output.info(line)

    def execute(self, command: BackgroundCommand, tokens: CommandTokens) -> None:
        """Stop and join the previous task, then parse and start ``command``."""
        if command.needs_arguments and not tokens:
            self._print_usage(command.name)
            return
        self._stop_last_task()
        if not command.parse(tokens):
            return
        if command.changes_position:
            self.last_position = []
        task = BackgroundTask(command, self.engine)
        if task.start():
            self.last_task = task

    def handle_go(self, tokens: CommandTokens) -> None:
        self.execute(GoCommand(self.engine), tokens)

    def handle_perft(self, tokens: CommandTokens) -> None:
        self.execute(PerftCommand(self.engine), tokens)

    def handle_register(self, tokens: CommandTokens) -> None:
        self.execute(RegisterCommand(self.engine), tokens)

    def handle_test(self, tokens: CommandTokens) -> None:
        self.execute(TestCommand(self.engine), tokens)

    def handle_uci(self, _: CommandTokens) -> None:
        engine = self.engine
        lines = [f"id name {engine.engine_name()} {engine.engine_version()}".rstrip()]
        for label, value in (
            ("author", engine.author_name()),
            ("email", engine.email_address()),
            ("country", engine.country_name()),
        ):
            if value:
                lines.append(f"id {label} {value}")
        lines.extend(option.uci_line() for option in engine.get_options())
        lines.append("uciok")
        self.output.write_lines(lines)

        if engine.is_copy_protected():
            self.output.send("copyprotection checking")
            self.output.send("copyprotection ok" if engine.copy_is_ok() else "copyprotection error")
        if not engine.is_registered():
            self.output.send("registration error")

    def handle_debug(self, tokens: CommandTokens) -> None:
        if tokens.pop_param("on"):
            flag = True
        elif tokens.pop_param("off"):
            flag = False
        else:
            flag = not self.engine.is_debug_on()
        self.engine.set_debug(flag)
        self.output.info(f"debug {'on' if flag else 'off'}")

    def handle_isready(self, _: CommandTokens) -> None:
        self._join_last_task()
        self.output.send("readyok")

    def handle_stop(self, _: CommandTokens) -> None:
        if self.last_task is not None and self.last_task.is_running():
            self.last_task.stop()

    def handle_ponderhit(self, _: CommandTokens) -> None:
        self.engine.ponder_hit()

    def handle_setoption(self, tokens: CommandTokens) -> None:
        if not tokens:
            self._print_usage("setoption")
            return
        if not tokens.first_is("name"):
            self.output.info("Missing name token")
            return
        try:
            name = tokens.pop_string_value("name", until="value")
        except TokenError:
            self.output.info("Missing name value")
            return
        value = ""
        if tokens.first_is("value"):
            try:
                value = tokens.pop_string_value("value") or ""
            except TokenError:
                self.output.info("Missing value")
                return
        if tokens:
            self.output.info(f"Unexpected token: {tokens[0]}")
            return
        if not self.engine.set_engine_option(name, value):
            self.output.info(f"Unknown option name '{name}' or invalid option value '{value}'")

    def handle_ucinewgame(self, _: CommandTokens) -> None:
        self._ensure_initialized()
        self._stop_last_task()
        self.last_position = []
        self.engine.clear_search_data()

    def handle_new(self, tokens: CommandTokens) -> None:
        self.handle_ucinewgame(tokens)
        if not tokens or tokens.pop_param("startpos") or tokens.first_is("moves") or is_move(tokens[0]):
            if self.engine.set_position(START_FEN) is None:
                self.output.info(f"Invalid position: {START_FEN}")
                return
        else:
            tokens.pop_param("fen")
            text = str(tokens)
            remain = self.engine.set_position(text)
            if remain is None:
                self.output.info(f"Invalid position: {text}")
                return
            tokens = CommandTokens(remain)
        tokens.pop_param("moves")
        self._apply_moves(tokens)
        if self.engine.is_debug_on():
            self.engine.print_board()

    def handle_position(self, tokens: CommandTokens) -> None:
        if not tokens:
            self._print_usage("position")
            return
        line = ["position", *tokens]
        self._ensure_initialized()
        self._stop_last_task()

        cached = self.last_position
        if cached and line[: len(cached)] == cached:
            tokens = CommandTokens(line[len(cached):])
        elif tokens.pop_param("startpos"):
            if self.engine.set_position(START_FEN) is None:
                self._invalid_position(START_FEN)
                return
        else:
            tokens.pop_param("fen")
            text = str(tokens)
            remain = self.engine.set_position(text)
            if remain is None:
                self._invalid_position(text)
                return
            tokens = CommandTokens(remain)

        self.last_position = line
        tokens.pop_param("moves")
        if not self._apply_moves(tokens):
            self.last_position = []
        if self.engine.is_debug_on():
            self.engine.print_board()

    def _invalid_position(self, text: str) -> None:
        self.output.info(f"Invalid position: {text}")
        self.last_position = []

    def _apply_moves(self, tokens: CommandTokens) -> bool:
        """Apply leading moves; earlier moves stay applied when one fails."""
        while tokens and is_move(tokens[0]):
            move = tokens.popleft()
            if not self.engine.make_move(move):
                self.output.info(f"Invalid move: {move}")
                return False
        return True

    def handle_moves(self, tokens: CommandTokens) -> None:
        self._ensure_initialized()
        self._stop_last_task()
        self.last_position = []
        while tokens:
            move = tokens.popleft()
            if not is_move(move) or not self.engine.make_move(move):
                self.output.info(f"Invalid move: {move}")
                return
            if self.engine.is_debug_on():
                self.engine.print_board()

    def handle_fen(self, _: CommandTokens) -> None:
        self._join_last_task()
        self.output.info(self.engine.get_fen())

    def handle_print(self, _: CommandTokens) -> None:
        self._join_last_task()
        self.engine.print_board()

    def handle_opts(self, _: CommandTokens) -> None:
        lines = [line for line in (option.opts_line() for option in self.engine.get_options()) if line]
        with self.output.block():
            for line in lines:
                self.output.info(line)

    def handle_quit(self, _: CommandTokens) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        self._stop_last_task()
        self.engine.quit()
        self.running = False
