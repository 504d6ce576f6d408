"""Adapter configuration: watchdog timing and default test-suite files."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, Optional

ENV_PREFIX = "UCIADAPTER_"


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass(frozen=True)
class AdapterConfig:
    # watchdog cadence while a search runs / while idle (milliseconds)
    poll_interval_ms: int = 50
    idle_interval_ms: int = 250
    # minimum gap between two progress lines
    output_interval_ms: int = 1000
    # flag the timeout this many milliseconds before the deadline
    deadline_margin_ms: int = 10
    default_moves_to_go: int = 15
    use_timer: bool = True
    perft_file: str = "epd/perftsuite.epd"
    test_file: str = "epd/test.epd"

    def clamp(self) -> "AdapterConfig":
        poll = _clamp(int(self.poll_interval_ms), 1, 1000)
        return replace(
            self,
            poll_interval_ms=poll,
            idle_interval_ms=_clamp(int(self.idle_interval_ms), poll, 60000),
            output_interval_ms=_clamp(int(self.output_interval_ms), 1, 3600000),
            deadline_margin_ms=_clamp(int(self.deadline_margin_ms), 0, 1000),
            default_moves_to_go=_clamp(int(self.default_moves_to_go), 1, 500),
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional["AdapterConfig"] = None,
    ) -> "AdapterConfig":
        """Overlay ``UCIADAPTER_<FIELD>`` variables on ``base`` (or a preset).

        ``UCIADAPTER_PRESET`` picks the starting preset when ``base`` is None.
        """
        environ = os.environ if environ is None else environ
        if base is None:
            base = ConfigRegistry.resolve(environ.get(ENV_PREFIX + "PRESET", "default"))
        overrides: Dict[str, object] = {}
        for item in fields(cls):
            raw = environ.get(ENV_PREFIX + item.name.upper())
            if raw is None:
                continue
            current = getattr(base, item.name)
            if isinstance(current, bool):
                overrides[item.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif isinstance(current, int):
                try:
                    overrides[item.name] = int(raw)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{item.name.upper()} must be an integer, got '{raw}'") from None
            else:
                overrides[item.name] = raw
        return replace(base, **overrides).clamp()


class ConfigRegistry:
    PRESETS: Dict[str, AdapterConfig] = {
        "default": AdapterConfig(),
        "responsive": AdapterConfig(
            poll_interval_ms=10,
            idle_interval_ms=100,
            output_interval_ms=250,
            deadline_margin_ms=5,
        ),
        "quiet": AdapterConfig(output_interval_ms=3600000),
    }

    @classmethod
    def resolve(cls, preset: str) -> AdapterConfig:
        if preset not in cls.PRESETS:
            raise ValueError(f"Unknown config preset '{preset}'")
        return cls.PRESETS[preset].clamp()
