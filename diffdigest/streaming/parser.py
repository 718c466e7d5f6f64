"""Opportunistic whole-object parsing of the accumulated stream.

While the object is still streaming the parse fails on almost every
attempt; that is expected and stays quiet. Once the object is complete
the parsed values are authoritative and replace the incrementally built
text.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from diffdigest.schemas.notes import ReleaseNotes

logger = logging.getLogger(__name__)


def try_parse_notes(raw: str) -> ReleaseNotes | None:
    """Attempt to parse everything received so far as a ReleaseNotes object.

    Args:
        raw: The full accumulated stream text.

    Returns:
        The parsed notes, or None while the object is incomplete or does
        not have exactly the two expected string fields.
    """
    # A complete object always ends with its closing brace
    if not raw.rstrip().endswith("}"):
        return None

    try:
        data = json.loads(raw)
        return ReleaseNotes.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.debug("Accumulated notes not parseable yet: %s", type(e).__name__)
        return None
