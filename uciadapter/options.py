"""Engine option descriptors as advertised by the ``uci`` command."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class OptionType(Enum):
    BUTTON = "button"
    CHECK = "check"
    COMBO = "combo"
    SPIN = "spin"
    STRING = "string"


@dataclass
class EngineOption:
    name: str
    option_type: OptionType = OptionType.STRING
    default: str = ""
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    combo_values: Tuple[str, ...] = ()
    value: str = field(default="")

    def __post_init__(self) -> None:
        if self.option_type is OptionType.CHECK:
            self.default = self.default.lower()
        if not self.value:
            self.value = self.default

    @property
    def type_name(self) -> str:
        return self.option_type.value

    @property
    def int_value(self) -> int:
        return int(self.value)

    def accepts(self, value: str) -> bool:
        if self.option_type is OptionType.BUTTON:
            return True
        if self.option_type is OptionType.CHECK:
            return value.lower() in ("true", "false")
        if self.option_type is OptionType.COMBO:
            return self._match_combo(value) is not None
        if self.option_type is OptionType.SPIN:
            try:
                number = int(value)
            except ValueError:
                return False
            if self.min_value is not None and number < self.min_value:
                return False
            if self.max_value is not None and number > self.max_value:
                return False
            return True
        return True

    def set_value(self, value: str) -> bool:
        """Assign ``value`` if it is inside this option's domain.

        Rejected values leave the current value untouched.  Buttons accept any
        value but store nothing; pressing them is up to the engine.
        """
        value = value.strip()
        if not self.accepts(value):
            return False
        if self.option_type is OptionType.BUTTON:
            return True
        if self.option_type is OptionType.CHECK:
            value = value.lower()
        elif self.option_type is OptionType.COMBO:
            value = self._match_combo(value)
        elif self.option_type is OptionType.SPIN:
            value = str(int(value))
        self.value = value
        return True

    def reset(self) -> None:
        self.value = self.default

    def uci_line(self) -> str:
        line = f"option name {self.name} type {self.type_name}"
        if self.option_type is not OptionType.BUTTON and self.default:
            line += f" default {self.default}"
        if self.min_value is not None:
            line += f" min {self.min_value}"
        if self.max_value is not None:
            line += f" max {self.max_value}"
        for choice in self.combo_values:
            line += f" var {choice}"
        return line

    def opts_line(self) -> Optional[str]:
        if self.option_type is OptionType.BUTTON:
            return None
        if self.option_type is OptionType.COMBO:
            return " ".join([f"{self.type_name}:{self.name}", *self.combo_values])
        return f"{self.type_name}:{self.name} {self.value}"

    def _match_combo(self, value: str) -> Optional[str]:
        for choice in self.combo_values:
            if choice.lower() == value.lower():
                return choice
        return None
