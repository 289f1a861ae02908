"""Lenient decoding of the JSON arrays language models return.

The repair step is a narrow text heuristic, not a JSON5 parser.  It
handles exactly three defects:

* trailing commas before ``}`` or ``]``;
* single-quoted strings (every ``'`` becomes ``"``);
* bare object keys (``{start: ...}``).

It can corrupt text that legitimately contains apostrophes; it only runs
after a strict parse has already failed.
"""

import json
import logging
import re
from typing import Any

from themeforge.errors import MalformedResponseError

LOGGER = logging.getLogger("themeforge.jsonrepair")

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)(\w+)(\s*:)")


def extract_array_text(content: str) -> str:
    """Return the text between the first ``[`` and the last ``]``.

    Prose around the array is dropped; without brackets the content is
    returned unchanged.
    """
    start = content.find("[")
    end = content.rfind("]")
    if start >= 0 and end > start:
        return content[start:end + 1]
    return content


def repair(text: str) -> str:
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    text = text.replace("'", '"')
    return _BARE_KEY_RE.sub(r'\1"\2"\3', text)


def loads_lenient(content: str) -> Any:
    """Parse a model response, attempting one repair pass on failure."""
    text = extract_array_text(content)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Could not parse response as JSON (%s); attempting repair", exc)
        LOGGER.debug("Raw response: %s", text)

    try:
        return json.loads(repair(text))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"JSON still invalid after repair: {exc}") from exc
