"""Normalizers for raw values extracted by the intent service."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D", re.ASCII)
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def clean_phone(value: str) -> str:
    """'310 555 9999' -> '3105559999'"""
    return _NON_DIGITS.sub("", value)


def clean_plate(value: str) -> str:
    """'x y z 555' -> 'XYZ555'"""
    return _NON_ALNUM.sub("", value).upper()
