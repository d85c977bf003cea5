"""Tests for the keyboard shortcut registry."""

import pytest

from sysboard.shortcuts import DEFAULT_SHORTCUTS, KeyPress, Shortcut, ShortcutRegistry, format_shortcut


@pytest.mark.parametrize(
    ("key", "press"),
    [
        ("f5", KeyPress("F5")),
        ("escape", KeyPress("Escape")),
        ("ctrl+h", KeyPress("h", ctrl=True)),
        ("alt+1", KeyPress("1", alt=True)),
        ("ctrl+comma", KeyPress(",", ctrl=True)),
        ("ctrl+shift+p", KeyPress("p", ctrl=True, shift=True)),
        ("x", KeyPress("x")),
    ],
)
def test_from_textual(key, press):
    """Test Textual key strings parse into key plus modifiers."""
    assert KeyPress.from_textual(key) == press


class TestResolve:
    """Tests for ShortcutRegistry.resolve."""

    @pytest.mark.parametrize(
        ("key", "action"),
        [
            ("f5", "refresh"),
            ("escape", "close"),
            ("alt+1", "show_ports"),
            ("alt+2", "show_processes"),
            ("alt+3", "show_containers"),
            ("alt+4", "show_actions"),
            ("ctrl+h", "help"),
            ("ctrl+comma", "settings"),
        ],
    )
    def test_defaults(self, key, action):
        shortcut = ShortcutRegistry().resolve(KeyPress.from_textual(key))

        assert shortcut is not None
        assert shortcut.action == action

    def test_declared_modifiers_must_match(self):
        registry = ShortcutRegistry()

        assert registry.resolve(KeyPress("1")) is None
        assert registry.resolve(KeyPress("h")) is None

    def test_declared_false_modifier_rejects_press(self):
        """Test a modifier declared False must be released, while undeclared ones are ignored."""
        strict = ShortcutRegistry([Shortcut("1", "only_alt", alt=True, ctrl=False)])

        assert strict.resolve(KeyPress("1", alt=True)).action == "only_alt"
        assert strict.resolve(KeyPress("1", alt=True, ctrl=True)) is None
        assert ShortcutRegistry().resolve(KeyPress("1", alt=True, ctrl=True)).action == "show_ports"

    def test_unspecified_modifiers_are_wildcards(self):
        """Test F5 fires with or without modifiers held."""
        registry = ShortcutRegistry()

        assert registry.resolve(KeyPress("F5", shift=True)).action == "refresh"
        assert registry.resolve(KeyPress("h", ctrl=True, shift=True)).action == "help"

    def test_nothing_fires_while_typing(self):
        registry = ShortcutRegistry()

        assert registry.resolve(KeyPress("F5"), typing=True) is None
        assert registry.resolve(KeyPress("1", alt=True), typing=True) is None

    def test_first_match_wins(self):
        registry = ShortcutRegistry([Shortcut("r", "reload", ctrl=True)])
        registry.register(Shortcut("r", "other"))

        assert registry.resolve(KeyPress("r", ctrl=True)).action == "reload"
        assert registry.resolve(KeyPress("r")).action == "other"
        assert [s.action for s in registry.shortcuts] == ["reload", "other"]


def test_format_shortcut():
    formatted = {s.action: format_shortcut(s) for s in DEFAULT_SHORTCUTS}

    assert formatted["refresh"] == "F5"
    assert formatted["help"] == "Ctrl + h"
    assert formatted["show_ports"] == "Alt + 1"
