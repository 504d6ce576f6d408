"""Command line entry point: run the reference engine behind the UCI adapter."""

import argparse
import os
from dataclasses import replace
from typing import Optional, Sequence

from .adapter import UCIAdapter
from .config import ENV_PREFIX, AdapterConfig, ConfigRegistry
from .simple_engine import SimpleEngine


def build_parser() -> argparse.ArgumentParser:
    default_preset = os.environ.get(ENV_PREFIX + "PRESET", "default")
    parser = argparse.ArgumentParser(description="UCI adapter with the SimpleEngine reference engine", add_help=True)
    parser.add_argument(
        "--preset",
        choices=sorted(ConfigRegistry.PRESETS.keys()),
        default=default_preset,
        help="Timing preset to start from",
    )
    parser.add_argument("--debug", action="store_true", help="Start with debug output enabled")
    parser.add_argument("--output-interval", type=int, help="Milliseconds between progress lines")
    parser.add_argument("--perft-file", help="Default file for 'perft epd'")
    parser.add_argument("--test-file", help="Default file for 'test'")
    parser.add_argument("--no-timer", action="store_true", help="Do not start the watchdog thread")
    return parser


def load_config(args: argparse.Namespace) -> AdapterConfig:
    config = AdapterConfig.from_env(base=ConfigRegistry.resolve(args.preset))
    overrides = {}
    if args.output_interval is not None:
        overrides["output_interval_ms"] = args.output_interval
    if args.perft_file:
        overrides["perft_file"] = args.perft_file
    if args.test_file:
        overrides["test_file"] = args.test_file
    if args.no_timer:
        overrides["use_timer"] = False
    return replace(config, **overrides).clamp()


def engine_main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    engine = SimpleEngine(load_config(args))
    engine.set_debug(args.debug)
    UCIAdapter(engine).start()


if __name__ == "__main__":
    engine_main()
