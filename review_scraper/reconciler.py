"""Turn the vision model's free-form reply into review records.

The reply is supposed to be a bare JSON object but often arrives inside
code fences or with a sentence of prose around it. Parsing runs through
`ATTEMPTS` in order; each step returns a list of records or None to hand
over to the next one. The last step always succeeds with an empty list,
so `reconcile` never raises.
"""

import json
import logging
import re
from typing import Any, Callable, List, Optional, Sequence

from pydantic import ValidationError

from .models import ReviewRecord

logger = logging.getLogger("app.reconciler")

Attempt = Callable[[str], Optional[List[ReviewRecord]]]

_FENCE_RE = re.compile(r"```[\w-]*[ \t]*\n?|\n?```")


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def records_from_payload(payload: Any) -> Optional[List[ReviewRecord]]:
    """Build records from decoded JSON, or None if it has the wrong shape."""
    if isinstance(payload, dict):
        items = payload.get("reviews")
    elif isinstance(payload, list):
        items = payload
    else:
        return None
    if not isinstance(items, list):
        return None

    records = []
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping review %d: not an object", position)
            continue
        try:
            records.append(ReviewRecord.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping review %d: %s", position, e)
    return records


def _decode(text: str) -> Optional[List[ReviewRecord]]:
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return records_from_payload(payload)


def parse_strict(text: str) -> Optional[List[ReviewRecord]]:
    return _decode(text)


def parse_braced(text: str) -> Optional[List[ReviewRecord]]:
    """Parse the span from the first `{` to the last `}`."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    records = _decode(text[start : end + 1])
    if records is not None:
        logger.info("Extracted JSON from surrounding text")
    return records


def parse_bracketed(text: str) -> Optional[List[ReviewRecord]]:
    """Parse the span from the first `[` to the last `]`."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    records = _decode(text[start : end + 1])
    if records is not None:
        logger.info("Extracted JSON array from surrounding text")
    return records


def give_up(text: str) -> List[ReviewRecord]:
    if text:
        logger.error("Could not parse vision model response, returning no reviews")
    return []


ATTEMPTS: Sequence[Attempt] = (parse_strict, parse_braced, parse_bracketed, give_up)


def reconcile(raw: Optional[str]) -> List[ReviewRecord]:
    cleaned = strip_code_fences(raw or "")
    for attempt in ATTEMPTS:
        records = attempt(cleaned)
        if records is not None:
            logger.info("Parsed %d reviews via %s", len(records), attempt.__name__)
            return records
    return []
