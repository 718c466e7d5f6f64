"""Section tracking for the streamed notes object.

Decides, fragment by fragment, which of the two note fields incoming text
belongs to. Two strategies share one interface:

- JsonSectionTracker walks the JSON text character by character and only
  routes decoded string content of the ``developer`` / ``marketing``
  values. Structural characters never leak into the notes.
- MarkerSectionTracker switches section whenever a fragment contains the
  field name and routes the whole raw fragment. Cheaper, but prose that
  mentions "developer" or "marketing" can misroute text.

Both only ever move the active section forward:
NONE -> DEVELOPER -> MARKETING.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum

from diffdigest.schemas.config import SectionDetection
from diffdigest.schemas.streaming import SECTION_ORDER, Section

logger = logging.getLogger(__name__)

# Routed increments: (section, text) pairs in stream order
Routed = list[tuple[Section, str]]

_FIELD_SECTIONS: dict[str, Section] = {
    "developer": Section.DEVELOPER,
    "marketing": Section.MARKETING,
}

_SIMPLE_ESCAPES: dict[str, str] = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_WHITESPACE = " \t\r\n"
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_REPLACEMENT = "\ufffd"


class SectionTracker(ABC):
    """Routes text fragments to note sections."""

    # True when route() hands back raw fragments that still need cleanup
    raw_fragments: bool = False

    def __init__(self) -> None:
        self._section = Section.NONE

    @property
    def active_section(self) -> Section:
        """The section new text is currently routed into."""
        return self._section

    def _advance(self, section: Section) -> bool:
        """Move the active section forward; refuse to move backward."""
        if SECTION_ORDER[section] < SECTION_ORDER[self._section]:
            return False
        self._section = section
        return True

    @abstractmethod
    def route(self, fragment: str) -> Routed:
        """Consume one fragment and return the increments it contributes."""


class MarkerSectionTracker(SectionTracker):
    """Substring-marker section detection.

    The developer marker is checked before the marketing marker, so a
    fragment containing both ends in MARKETING.
    """

    raw_fragments = True

    def route(self, fragment: str) -> Routed:
        if Section.DEVELOPER.value in fragment:
            self._advance(Section.DEVELOPER)
        if Section.MARKETING.value in fragment:
            self._advance(Section.MARKETING)

        if self._section is Section.NONE or not fragment:
            return []
        return [(self._section, fragment)]


class _State(StrEnum):
    SEEK_OBJECT = "seek_object"
    EXPECT_KEY = "expect_key"
    IN_KEY = "in_key"
    EXPECT_COLON = "expect_colon"
    EXPECT_VALUE = "expect_value"
    IN_STRING = "in_string"
    IN_SCALAR = "in_scalar"
    IN_NESTED = "in_nested"
    AFTER_VALUE = "after_value"
    DONE = "done"


class JsonSectionTracker(SectionTracker):
    """Incremental tokenizer for the single top-level notes object.

    Tracks key, value and string boundaries across fragment splits and
    decodes JSON escapes, including ``\\uXXXX`` sequences and surrogate
    pairs that arrive in pieces. Values of unknown keys, and non-string
    values, are skipped.
    """

    def __init__(self) -> None:
        super().__init__()
        self._state = _State.SEEK_OBJECT
        self._key: list[str] = []
        self._target: Section | None = None

        # String decoding state (only one string is open at a time)
        self._escape = False
        self._unicode: str | None = None
        self._high_surrogate: int | None = None

        # Nested value skipping
        self._depth = 0
        self._nested_in_string = False
        self._nested_escape = False

    @property
    def done(self) -> bool:
        """True once the closing brace of the object has been seen."""
        return self._state is _State.DONE

    def route(self, fragment: str) -> Routed:
        routed: Routed = []
        i = 0
        while i < len(fragment):
            ch = fragment[i]
            state = self._state

            if state is _State.DONE:
                break

            if state is _State.SEEK_OBJECT:
                if ch == "{":
                    self._state = _State.EXPECT_KEY

            elif state is _State.EXPECT_KEY:
                if ch == '"':
                    self._key = []
                    self._state = _State.IN_KEY
                elif ch == "}":
                    self._state = _State.DONE

            elif state is _State.IN_KEY:
                text, closed = self._string_char(ch)
                self._key.append(text)
                if closed:
                    self._select("".join(self._key))
                    self._state = _State.EXPECT_COLON

            elif state is _State.EXPECT_COLON:
                if ch == ":":
                    self._state = _State.EXPECT_VALUE

            elif state is _State.EXPECT_VALUE:
                if ch == '"':
                    self._state = _State.IN_STRING
                elif ch in "{[":
                    self._depth = 1
                    self._nested_in_string = False
                    self._nested_escape = False
                    self._state = _State.IN_NESTED
                elif ch not in _WHITESPACE:
                    self._state = _State.IN_SCALAR

            elif state is _State.IN_STRING:
                text, closed = self._string_char(ch)
                if text and self._target is not None:
                    _append(routed, self._target, text)
                if closed:
                    self._target = None
                    self._state = _State.AFTER_VALUE

            elif state is _State.IN_SCALAR:
                if ch in ",}":
                    # Reprocess the delimiter as the end of the value
                    self._state = _State.AFTER_VALUE
                    continue
                if ch in _WHITESPACE:
                    self._state = _State.AFTER_VALUE

            elif state is _State.IN_NESTED:
                self._skip_nested(ch)

            elif state is _State.AFTER_VALUE:
                if ch == ",":
                    self._state = _State.EXPECT_KEY
                elif ch == "}":
                    self._state = _State.DONE

            i += 1

        return routed

    def _select(self, key: str) -> None:
        """Pick the routing target for the value of ``key``."""
        section = _FIELD_SECTIONS.get(key)
        self._target = None
        if section is None:
            return
        if self._advance(section):
            self._target = section
        else:
            logger.warning(
                "Ignoring %r value emitted after %s section",
                key, self._section.value,
            )

    def _skip_nested(self, ch: str) -> None:
        if self._nested_in_string:
            if self._nested_escape:
                self._nested_escape = False
            elif ch == "\\":
                self._nested_escape = True
            elif ch == '"':
                self._nested_in_string = False
            return
        if ch == '"':
            self._nested_in_string = True
        elif ch in "{[":
            self._depth += 1
        elif ch in "}]":
            self._depth -= 1
            if self._depth == 0:
                self._state = _State.AFTER_VALUE

    # ── String decoding ───────────────────────────────────────────

    def _string_char(self, ch: str) -> tuple[str, bool]:
        """Decode one character inside a JSON string.

        Returns:
            (decoded text, closed) where closed is True when ``ch`` was
            the unescaped closing quote.
        """
        if self._unicode is not None:
            if ch not in _HEX_DIGITS:
                # Malformed \u escape; keep going with the character
                self._unicode = None
                text, closed = self._string_char(ch)
                return _REPLACEMENT + text, closed
            self._unicode += ch
            if len(self._unicode) < 4:
                return "", False
            code = int(self._unicode, 16)
            self._unicode = None
            return self._code_point(code), False

        if self._escape:
            self._escape = False
            if ch == "u":
                self._unicode = ""
                return "", False
            return self._flush_surrogate() + _SIMPLE_ESCAPES.get(ch, ch), False

        if ch == "\\":
            self._escape = True
            return "", False

        if ch == '"':
            return self._flush_surrogate(), True

        return self._flush_surrogate() + ch, False

    def _code_point(self, code: int) -> str:
        if 0xD800 <= code <= 0xDBFF:
            pending = self._flush_surrogate()
            self._high_surrogate = code
            return pending
        if 0xDC00 <= code <= 0xDFFF:
            if self._high_surrogate is None:
                return _REPLACEMENT
            high = self._high_surrogate
            self._high_surrogate = None
            return chr(0x10000 + ((high - 0xD800) << 10) + (code - 0xDC00))
        return self._flush_surrogate() + chr(code)

    def _flush_surrogate(self) -> str:
        """Drop an unpaired high surrogate, standing in a replacement char."""
        if self._high_surrogate is None:
            return ""
        self._high_surrogate = None
        return _REPLACEMENT


def _append(routed: Routed, section: Section, text: str) -> None:
    """Append text, merging with the previous increment for the same section."""
    if routed and routed[-1][0] is section:
        routed[-1] = (section, routed[-1][1] + text)
    else:
        routed.append((section, text))


def make_tracker(mode: SectionDetection | str = SectionDetection.STRUCTURAL) -> SectionTracker:
    """Build the section tracker for a detection mode."""
    mode = SectionDetection(mode)
    if mode is SectionDetection.MARKER:
        return MarkerSectionTracker()
    return JsonSectionTracker()
