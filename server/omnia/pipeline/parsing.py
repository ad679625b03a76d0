"""Strict parsing of LLM responses that are supposed to carry JSON."""

import json
import re
from typing import Callable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ParseError

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang and trailing ``` wrapper."""
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def extract_json(content: str) -> dict:
    """Parse a JSON object out of an LLM response.

    Tries the whole (fence-stripped) text first, then the outermost
    ``{...}`` block, since models like to wrap JSON in prose.
    """
    text = strip_code_fences(content)
    if not text:
        raise ParseError("empty response")

    candidates = [text]
    match = _OBJECT_RE.search(text)
    if match and match.group(0) != text:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ParseError(f"response is not a JSON object: {text[:120]!r}")


def parse_model(content: str, model: Type[M]) -> M:
    """Parse content and validate it against a pydantic model."""
    data = extract_json(content)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"response does not match {model.__name__}: {e.error_count()} errors")


def parse_with_fallback(
    content: str,
    model: Type[M],
    fallback: Optional[Callable[[], M]] = None,
) -> tuple[M, bool]:
    """Parse content, using the degraded fallback when parsing fails.

    Returns ``(value, degraded)``. Without a fallback the ParseError propagates.
    """
    try:
        return parse_model(content, model), False
    except ParseError:
        if fallback is None:
            raise
        return fallback(), True
