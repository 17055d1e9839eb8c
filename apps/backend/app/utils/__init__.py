"""
Utils package
"""

from .money import (
    CENT,
    amount_of,
    effectively_equal,
    exceeds,
    percent_of,
    quantize_money,
    quantize_percent,
    split_evenly,
    to_decimal,
)

__all__ = [
    "CENT",
    "amount_of",
    "effectively_equal",
    "exceeds",
    "percent_of",
    "quantize_money",
    "quantize_percent",
    "split_evenly",
    "to_decimal",
]
