from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pixelchain.domain.entities.operation import OperationNode
from pixelchain.domain.errors import MalformedRequestError, UnsupportedOperationError
from pixelchain.domain.services.registry import lookup

logger = logging.getLogger(__name__)


@dataclass
class ChainBuilder:
    """
    Turn a request body into a linked chain of operation nodes.

    Two body shapes are accepted:
    - a single operation: {"type": "resize", "params": {"width": 800}}
    - a pipeline: {"operations": [{"type": "rotate", ...}, {"type": "format", ...}]}

    In a pipeline each node takes the last successfully parsed node as its
    predecessor; the first one takes the raw image bytes. An element that
    cannot be parsed is skipped under the "skip" policy and aborts the build
    under "abort".
    """

    unknown_operation_policy: str = "skip"
    max_operations: int | None = None

    def parse_one(
        self,
        spec: Any,
        predecessor: OperationNode | None = None,
        raw_input: bytes | None = None,
    ) -> OperationNode | None:
        """
        Parse one operation spec into a node.

        Returns None when the spec carries no ``type``.

        Raises:
            UnsupportedOperationError: unknown operation type
            MalformedRequestError: ``params`` present but not an object
        """
        if not isinstance(spec, Mapping) or spec.get("type") is None:
            return None
        type_name = spec["type"]
        constructor = lookup(type_name)
        if constructor is None:
            raise UnsupportedOperationError(str(type_name))
        params = spec.get("params")
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise MalformedRequestError(
                f"params for {type_name} must be an object", {"type": str(type_name)}
            )
        if predecessor is not None:
            return constructor(params, predecessor=predecessor)
        return constructor(params, raw_input=raw_input)

    def build(self, body: Mapping[str, Any], raw_input: bytes) -> OperationNode | None:
        operations = body.get("operations")
        if not isinstance(operations, list):
            return self.parse_one(body, None, raw_input)

        if self.max_operations is not None and len(operations) > self.max_operations:
            raise MalformedRequestError(
                f"Pipeline has {len(operations)} operations; at most "
                f"{self.max_operations} are allowed"
            )

        tail: OperationNode | None = None
        for index, spec in enumerate(operations):
            try:
                node = self.parse_one(spec, tail, None if tail is not None else raw_input)
            except (UnsupportedOperationError, MalformedRequestError) as exc:
                if self.unknown_operation_policy == "abort":
                    raise
                logger.warning("Skipping pipeline operation %d: %s", index, exc.message)
                continue
            if node is not None:
                tail = node
        return tail
