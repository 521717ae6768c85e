"""Closed mapping from operation type names to node constructors."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import partial
from typing import Any

from pixelchain.domain.entities.operation import OperationKind, OperationNode

NodeConstructor = Callable[..., OperationNode]

_REGISTRY: Mapping[str, NodeConstructor] = {
    kind.value: partial(OperationNode, kind) for kind in OperationKind
}


def lookup(type_name: Any) -> NodeConstructor | None:
    """Return the constructor for ``type_name`` (case-insensitive) or None."""
    if not isinstance(type_name, str):
        return None
    return _REGISTRY.get(type_name.strip().lower())


def supported_operations() -> list[str]:
    return [kind.value for kind in OperationKind]
