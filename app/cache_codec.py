"""Cache entry names.

An entry's metadata lives in its file name::

    <max_age>.<expire_at>.<identity_tag><extension>

    e.g. 14400.1790149400.lb8rhuuM92bhYv2KvdczyjnmOqtYouQLs6UF_uHFHGY=.webp
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from .errors import MalformedEntryName

_INT_RE = re.compile(r"-?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class EntryMetadata:
    max_age: int
    expire_at: int
    identity_tag: str
    extension: str


def encode_entry_name(max_age: int, expire_at: int, identity_tag: str, extension: str) -> str:
    if not extension.startswith("."):
        raise ValueError("extension must start with '.'")
    return f"{max_age}.{expire_at}.{identity_tag}{extension}"


def decode_entry_name(name: str) -> EntryMetadata:
    stem, ext = os.path.splitext(name)
    if not ext:
        raise MalformedEntryName(f"no extension: {name}")

    parts = stem.split(".")
    if len(parts) < 3:
        raise MalformedEntryName(f"not enough name parts: {name}")

    if not (_INT_RE.fullmatch(parts[0]) and _INT_RE.fullmatch(parts[1])):
        raise MalformedEntryName(f"non-numeric max-age or expiry: {name}")
    max_age = int(parts[0])
    expire_at = int(parts[1])

    if max_age < 0:
        raise MalformedEntryName(f"negative max-age: {name}")
    if not _INT64_MIN <= expire_at <= _INT64_MAX:
        raise MalformedEntryName(f"expiry out of range: {name}")

    # parts[3:] are ignored so later formats can append fields
    return EntryMetadata(
        max_age=max_age,
        expire_at=expire_at,
        identity_tag=parts[2],
        extension=ext,
    )
