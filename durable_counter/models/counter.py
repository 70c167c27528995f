from __future__ import annotations

"""
Counter request/response models

- AmountBody: the delta carried by an increment/decrement request. Decoding
  is tolerant: a body that is not a JSON object, or an object
  whose ``amount`` is not a number, yields ``amount=0`` instead of an error.

- format_count: the plain-text reply rendered for every counter operation.

Number rules
------------
JSON integers are used as-is. Floats count only when they are finite and
integral (``5.0`` -> 5). A fractional amount is never rounded or truncated:
``{"amount": 2.5}`` is treated like a non-number and applies 0, so a counter
never holds anything but an integer. ``NaN`` and ``Infinity`` get the same
treatment, and booleans are not numbers.
"""

import json
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Delta used when a request carries no body at all.
DEFAULT_AMOUNT = 1
# Delta used when a body is present but does not carry a usable number.
FALLBACK_AMOUNT = 0


def _as_delta(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


class AmountBody(BaseModel):
    """
    Delta to apply to a counter.
    """

    amount: int = Field(FALLBACK_AMOUNT, description="Signed delta to apply.")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_json(cls, obj: Any) -> "AmountBody":
        """Build from an already-decoded JSON value; never raises."""
        raw = obj.get("amount") if isinstance(obj, dict) else None
        delta = _as_delta(raw)
        return cls(amount=FALLBACK_AMOUNT if delta is None else delta)


def decode_amount(raw: Optional[bytes], *, default: int = DEFAULT_AMOUNT) -> AmountBody:
    """
    Decode a request body into an :class:`AmountBody`.

    - empty/absent body -> ``default`` (1)
    - undecodable JSON, non-object, missing or non-numeric ``amount`` -> 0
    """
    if not raw or not raw.strip():
        return AmountBody(amount=default)
    try:
        obj = json.loads(raw)
    except (ValueError, RecursionError):
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        obj = None
    return AmountBody.from_json(obj)


def format_count(name: str, value: int) -> str:
    return f"Durable Object '{name}' count: {value}"


__all__ = [
    "DEFAULT_AMOUNT",
    "FALLBACK_AMOUNT",
    "AmountBody",
    "decode_amount",
    "format_count",
]
