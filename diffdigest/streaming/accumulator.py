"""Per-field text accumulation for streamed notes."""

from __future__ import annotations

import re

from diffdigest.schemas.streaming import Section

# Key, colon and opening quote of a field, plus the structural `{` / `,`
# that may precede it at the very start of a fragment.
_KEY_PREFIX: dict[Section, re.Pattern[str]] = {
    section: re.compile(r'(?:^\s*[{,]\s*)?"' + section.value + r'"\s*:\s*"')
    for section in (Section.DEVELOPER, Section.MARKETING)
}


def strip_key_prefix(section: Section, fragment: str) -> str:
    """Remove the first JSON key prefix for ``section`` from a raw fragment.

    Only a prefix that lands whole inside the fragment is removed; one
    split across fragments passes through untouched.
    """
    pattern = _KEY_PREFIX.get(section)
    if pattern is None:
        return fragment
    return pattern.sub("", fragment, count=1)


class FieldAccumulator:
    """Append-only buffers for the developer and marketing notes."""

    def __init__(self) -> None:
        self._buffers: dict[Section, str] = {
            Section.DEVELOPER: "",
            Section.MARKETING: "",
        }

    @property
    def developer(self) -> str:
        return self._buffers[Section.DEVELOPER]

    @property
    def marketing(self) -> str:
        return self._buffers[Section.MARKETING]

    def append(self, section: Section, text: str, *, clean: bool = False) -> str:
        """Append an increment to the buffer for ``section``.

        Args:
            section: Target field. NONE is ignored.
            text: The increment to add.
            clean: Strip the field's JSON key prefix first (raw fragments).

        Returns:
            The increment actually appended.
        """
        if section not in self._buffers:
            return ""
        if clean:
            text = strip_key_prefix(section, text)
        self._buffers[section] += text
        return text
