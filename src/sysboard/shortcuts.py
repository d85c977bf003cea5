"""Keyboard shortcut registry: single key-down chords mapped to app actions."""

from collections.abc import Iterable
from dataclasses import dataclass

_MODIFIERS = ("ctrl", "alt", "shift", "meta")

_KEY_ALIASES = {
    "escape": "Escape",
    "enter": "Enter",
    "tab": "Tab",
    "space": " ",
    "comma": ",",
    "full_stop": ".",
    "slash": "/",
    "question_mark": "?",
    "minus": "-",
    "plus": "+",
}


def _key_name(key: str) -> str:
    if key in _KEY_ALIASES:
        return _KEY_ALIASES[key]
    if len(key) > 1 and key[0] == "f" and key[1:].isdigit():
        return key.upper()
    return key


@dataclass(slots=True, frozen=True)
class KeyPress:
    """A key-down event with its modifier flags."""

    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False

    @classmethod
    def from_textual(cls, key: str) -> "KeyPress":
        """
        Parse a Textual key string.

        Args:
            key: e.g. "f5", "escape", "ctrl+h", "alt+1", "ctrl+comma".
        """
        parts = key.split("+")
        flags = {name: name in parts[:-1] for name in _MODIFIERS}
        return cls(_key_name(parts[-1]), **flags)


@dataclass(slots=True, frozen=True)
class Shortcut:
    """
    A shortcut binding.

    A modifier left as None is a wildcard; True or False must match the
    event exactly.
    """

    key: str
    action: str
    description: str = ""
    ctrl: bool | None = None
    alt: bool | None = None
    shift: bool | None = None
    meta: bool | None = None

    def matches(self, press: KeyPress) -> bool:
        """Whether ``press`` triggers this shortcut."""
        if press.key != self.key:
            return False
        for name in _MODIFIERS:
            wanted = getattr(self, name)
            if wanted is not None and getattr(press, name) != wanted:
                return False
        return True


DEFAULT_SHORTCUTS: tuple[Shortcut, ...] = (
    Shortcut("F5", "refresh", "Refresh current view"),
    Shortcut("Escape", "close", "Close current dialog"),
    Shortcut("1", "show_ports", "Switch to port monitor", alt=True),
    Shortcut("2", "show_processes", "Switch to process manager", alt=True),
    Shortcut("3", "show_containers", "Switch to containers", alt=True),
    Shortcut("4", "show_actions", "Switch to quick actions", alt=True),
    Shortcut("h", "help", "Show shortcut help", ctrl=True),
    Shortcut(",", "settings", "Open settings", ctrl=True),
)


class ShortcutRegistry:
    """Flat table checked in registration order; the first match wins."""

    def __init__(self, shortcuts: Iterable[Shortcut] = DEFAULT_SHORTCUTS) -> None:
        self._shortcuts: list[Shortcut] = list(shortcuts)

    def register(self, shortcut: Shortcut) -> None:
        """Append a shortcut; earlier registrations take precedence."""
        self._shortcuts.append(shortcut)

    @property
    def shortcuts(self) -> tuple[Shortcut, ...]:
        """Registered shortcuts in match order."""
        return tuple(self._shortcuts)

    def resolve(self, press: KeyPress, typing: bool = False) -> Shortcut | None:
        """
        Find the shortcut for a key press.

        Args:
            press: The key-down event.
            typing: True when focus is in a text field; nothing fires then.
        """
        if typing:
            return None
        for shortcut in self._shortcuts:
            if shortcut.matches(press):
                return shortcut
        return None


def format_shortcut(shortcut: Shortcut) -> str:
    """Human-readable chord, e.g. "Ctrl + h"."""
    parts = [name.capitalize() for name in _MODIFIERS if getattr(shortcut, name)]
    parts.append(shortcut.key)
    return " + ".join(parts)
