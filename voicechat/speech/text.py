"""Preparing chat text for speech synthesis."""

import re

# *waves*, *laughs softly*: stage directions, not meant to be spoken
STAGE_DIRECTION = re.compile(r"\*[^*]*\*")


def strip_stage_directions(text: str) -> str:
    """Remove asterisk-wrapped segments and trim the ends.

    Inner whitespace is left alone: "Hello *waves* there" -> "Hello  there".
    """
    return STAGE_DIRECTION.sub("", text).strip()
