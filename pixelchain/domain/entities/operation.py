from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from PIL import Image

from pixelchain.domain.errors import ChainConstructionError, InputRequiredError, TransformFailure


class OperationKind(str, Enum):
    RESIZE = "resize"
    CROP = "crop"
    FORMAT = "format"
    ROTATE = "rotate"
    FILTER = "filter"


@dataclass(frozen=True)
class WorkingImage:
    """Decoded image plus the format it will be encoded to."""

    image: Image.Image
    format: str = "png"

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


@dataclass(frozen=True, eq=False)
class OperationNode:
    """One step of a chain.

    A node holds either a predecessor (whose output is its input) or the raw
    bytes of the uploaded image; the root of a chain is the only node holding
    bytes. Params are copied into a read-only mapping on construction.
    """

    kind: OperationKind
    params: Mapping[str, Any] = field(default_factory=dict)
    predecessor: OperationNode | None = None
    raw_input: bytes | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.predecessor is None and not self.raw_input:
            raise InputRequiredError()
        if self.predecessor is not None and self.raw_input is not None:
            raise ChainConstructionError(
                "A node takes either a predecessor or raw input bytes, not both"
            )
        object.__setattr__(self, "params", MappingProxyType(dict(self.params or {})))

    @property
    def is_root(self) -> bool:
        return self.predecessor is None

    def lineage(self) -> list[OperationNode]:
        """Nodes from the root up to and including this one."""
        nodes: list[OperationNode] = []
        node: OperationNode | None = self
        while node is not None:
            nodes.append(node)
            node = node.predecessor
        nodes.reverse()
        return nodes

    @property
    def depth(self) -> int:
        return len(self.lineage())


@dataclass(frozen=True)
class StepOutcome:
    image: WorkingImage
    error: TransformFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PipelineResult:
    data: bytes
    format: str
    failures: tuple[TransformFailure, ...] = ()
