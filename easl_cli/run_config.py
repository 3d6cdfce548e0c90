# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import (
    AmbiguousEntryPoint,
    MissingTriangleCount,
    NoEntryPointFound,
    UnknownEntryPoint,
    ValidationError,
)
from .toolchain import GlobalVar, Toolchain

logger = logging.getLogger(__name__)

TRIANGLES_GLOBAL = "triangles"
U32_MAX = 2**32 - 1


@dataclass(frozen=True)
class RunConfig:
    wgsl: str
    vertex_entry: str
    fragment_entry: str
    triangles: int


def resolve_entry_point(stage: str, entries: Sequence[str], name: Optional[str]) -> str:
    if name is not None:
        if name not in entries:
            raise UnknownEntryPoint(stage, name)
        return name

    unique = list(dict.fromkeys(entries))
    if not unique:
        raise NoEntryPointFound(stage)
    if len(unique) > 1:
        raise AmbiguousEntryPoint(stage, unique)
    return unique[0]


def _parse_count(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    # Plain unsigned 32-bit decimal, an optional leading '+' is allowed.
    digits = value[1:] if value.startswith("+") else value
    if not (digits.isascii() and digits.isdigit()):
        return None
    count = int(digits)
    return count if 0 < count <= U32_MAX else None


def find_triangle_count(global_vars: Sequence[GlobalVar]) -> Optional[int]:
    for var in global_vars:
        if var.uniform_info is None and var.name == TRIANGLES_GLOBAL:
            count = _parse_count(var.value)
            if count is not None:
                return count
    return None


def build_run_config(
    toolchain: Toolchain,
    source: str,
    fragment: Optional[str] = None,
    vertex: Optional[str] = None,
    triangles: Optional[int] = None,
) -> RunConfig:
    wgsl = toolchain.compile(source)
    info = toolchain.inspect(source)

    fragment_entry = resolve_entry_point("fragment", info.fragment_entries, fragment)
    vertex_entry = resolve_entry_point("vertex", info.vertex_entries, vertex)

    if triangles is not None and triangles <= 0:
        raise ValidationError(f"Triangle count must be a positive integer, got {triangles}")
    if triangles is None:
        triangles = find_triangle_count(info.global_vars)
        if triangles is None:
            raise MissingTriangleCount()

    logger.debug(
        "Run config: vertex=%s fragment=%s triangles=%d", vertex_entry, fragment_entry, triangles
    )
    return RunConfig(wgsl, vertex_entry, fragment_entry, triangles)
