from uciadapter import EngineOption, OptionType


def test_spin_option_enforces_range() -> None:
    option = EngineOption("Hash", OptionType.SPIN, "16", min_value=1, max_value=1024)
    assert option.set_value(" 64 ")
    assert option.int_value == 64
    assert not option.set_value("0")
    assert not option.set_value("lots")
    assert option.value == "64"
    option.reset()
    assert option.value == "16"


def test_check_and_combo_values_are_normalised() -> None:
    check = EngineOption("Ponder", OptionType.CHECK, "False")
    assert check.default == "false"
    assert check.set_value("TRUE")
    assert check.value == "true"
    assert not check.set_value("yes")

    combo = EngineOption("Style", OptionType.COMBO, "Positional", combo_values=("Material", "Positional"))
    assert combo.set_value("material")
    assert combo.value == "Material"
    assert not combo.set_value("Aggressive")


def test_button_accepts_anything_and_stores_nothing() -> None:
    button = EngineOption("Clear Search Data", OptionType.BUTTON)
    assert button.set_value("whatever")
    assert button.value == ""
    assert button.opts_line() is None


def test_uci_lines() -> None:
    assert (
        EngineOption("Hash", OptionType.SPIN, "16", min_value=1, max_value=1024).uci_line()
        == "option name Hash type spin default 16 min 1 max 1024"
    )
    assert EngineOption("Ponder", OptionType.CHECK, "false").uci_line() == "option name Ponder type check default false"
    assert EngineOption("Clear Search Data", OptionType.BUTTON).uci_line() == "option name Clear Search Data type button"
    assert (
        EngineOption("Style", OptionType.COMBO, "Positional", combo_values=("Material", "Positional")).uci_line()
        == "option name Style type combo default Positional var Material var Positional"
    )
    assert EngineOption("Book", OptionType.STRING).uci_line() == "option name Book type string"


def test_opts_lines() -> None:
    assert EngineOption("Hash", OptionType.SPIN, "16").opts_line() == "spin:Hash 16"
    assert (
        EngineOption("Style", OptionType.COMBO, "Positional", combo_values=("Material", "Positional")).opts_line()
        == "combo:Style Material Positional"
    )
