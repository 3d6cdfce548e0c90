# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import importlib
import logging
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, List, Optional, Protocol, Tuple, runtime_checkable

from .errors import ToolchainError

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "easl.toolchains"


@dataclass(frozen=True)
class GlobalVar:
    name: str
    # None for plain (non uniform) globals
    uniform_info: Optional[Any] = None
    # Default value as written in the source, if any
    value: Optional[str] = None


@dataclass(frozen=True)
class ProgramInfo:
    fragment_entries: Tuple[str, ...] = ()
    vertex_entries: Tuple[str, ...] = ()
    global_vars: Tuple[GlobalVar, ...] = field(default_factory=tuple)


@runtime_checkable
class Toolchain(Protocol):
    """The language implementation used by every command.

    compile() returns the target shader text or raises CompileError.
    format() never fails. inspect() is only called on sources that compiled.
    """

    def compile(self, source: str) -> str: ...

    def format(self, source: str) -> str: ...

    def inspect(self, source: str) -> ProgramInfo: ...


def _resolve(obj: Any, name: str) -> Toolchain:
    if isinstance(obj, type) or (callable(obj) and not isinstance(obj, Toolchain)):
        try:
            obj = obj()
        except Exception as e:
            raise ToolchainError(f"Error: Failed to create toolchain {name}\n{e}") from e
    if not isinstance(obj, Toolchain):
        raise ToolchainError(f"Error: {name} does not implement compile, format and inspect")
    return obj


def import_toolchain(spec: str) -> Toolchain:
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ToolchainError(f"Error: Invalid toolchain '{spec}', expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ToolchainError(f"Error: Failed to import toolchain module {module_name}\n{e}") from e
    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ToolchainError(f"Error: Toolchain module {module_name} has no attribute {attr}") from e
    return _resolve(obj, spec)


def load_toolchain(spec: Optional[str] = None) -> Toolchain:
    if spec is not None:
        logger.debug("Using toolchain %s", spec)
        return import_toolchain(spec)

    eps: List[Any] = list(entry_points(group=ENTRY_POINT_GROUP))
    if not eps:
        raise ToolchainError(
            "Error: No easl toolchain installed. Install a package providing the "
            f"'{ENTRY_POINT_GROUP}' entry point or pass --toolchain module:attribute"
        )
    if len(eps) > 1:
        names = ", ".join(sorted(ep.name for ep in eps))
        raise ToolchainError(f"Error: Multiple easl toolchains installed ({names}). Use --toolchain to pick one")

    ep = eps[0]
    logger.debug("Using toolchain entry point %s = %s", ep.name, ep.value)
    try:
        obj = ep.load()
    except Exception as e:
        raise ToolchainError(f"Error: Failed to load toolchain {ep.value}\n{e}") from e
    return _resolve(obj, ep.value)
