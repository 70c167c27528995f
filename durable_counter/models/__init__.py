"""Request/response models for the counter HTTP surface."""

from __future__ import annotations

from .counter import (DEFAULT_AMOUNT, FALLBACK_AMOUNT, AmountBody,
                      decode_amount, format_count)

__all__ = [
    "DEFAULT_AMOUNT",
    "FALLBACK_AMOUNT",
    "AmountBody",
    "decode_amount",
    "format_count",
]
