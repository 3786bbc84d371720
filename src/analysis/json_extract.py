# src/analysis/json_extract.py

"""Pull the first JSON object out of free-form model output."""

import json
from typing import Any

_DECODER = json.JSONDecoder()


def extract_first_json_object(text: str | None) -> dict[str, Any] | None:
    """Return the first well-formed JSON object embedded in *text*.

    Tolerates code fences, prose before or after the object, and
    stray braces that do not start a valid document.
    """
    if not text:
        return None
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _end = _DECODER.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None
