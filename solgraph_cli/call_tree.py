"""Depth- and cycle-bounded call tree expansion."""

from __future__ import annotations

import logging
import re
from typing import AbstractSet, Dict, List, Optional

from .implementation_resolver import ImplementationResolver
from .interface_detector import InterfaceCallDetector
from .models import CallEdge, CallTreeNode, Entity, InterfaceMeta
from .repository import EntityRepository, looks_like_interface_file

logger = logging.getLogger(__name__)

# Patterns whose interface name appears in the source as a cast ``Name(expr)``.
CAST_PATTERNS = ("direct", "variable")

_ELEMENTARY_TYPE = re.compile(r"address|payable|bool|string|bytes\d*|u?int\d*")


def is_type_conversion(call_name: str, type_names: AbstractSet[str]) -> bool:
    """``IERC20(token)`` or ``address(this)`` parse as calls but are conversions."""
    return call_name in type_names or bool(_ELEMENTARY_TYPE.fullmatch(call_name))


def _routed_through(call_name: str, definition: Optional[Entity], edges: List[CallEdge]) -> bool:
    """Whether an interface edge already stands for the call site of *call_name*.

    The parser keeps only the member for ``IERC20(token).transferFrom(...)``,
    which then resolves to the interface's own declaration. The interface
    edge stands for that call site instead.
    """
    method = call_name.rsplit(".", 1)[-1]
    for edge in edges:
        if edge.method != method:
            continue
        if definition is None or definition is edge.definition:
            return True
        if definition.owner_name == edge.interface or looks_like_interface_file(definition.file):
            return True
    return False


class CallTreeBuilder:
    """Expand a start function into its call tree.

    A node is a leaf when its depth reaches ``max_depth`` or its entity
    already occurs on the path from the root; the same entity may still
    appear on other branches.
    """

    def __init__(
        self,
        repository: EntityRepository,
        detector: Optional[InterfaceCallDetector] = None,
        implementations: Optional[ImplementationResolver] = None,
    ) -> None:
        self.repository = repository
        self.detector = detector or InterfaceCallDetector()
        self.implementations = implementations

    def build(
        self,
        entity: Entity,
        max_depth: int,
        depth: int = 0,
        visited: AbstractSet[str] = frozenset(),
    ) -> CallTreeNode:
        node = CallTreeNode(identity=entity.identity, name=entity.name, depth=depth, definition=entity)
        if depth >= max_depth or entity.identity in visited:
            return node

        path = frozenset(visited) | {entity.identity}
        edges: List[CallEdge] = []
        if depth < max_depth - 1 and entity.raw_source:
            edges = self.detector.extract_calls(entity.raw_source, list(self.repository), caller=entity.identity)
        type_names = self.repository.contract_names() | {e.interface for e in edges if e.pattern in CAST_PATTERNS}

        static_names = set()
        internal_members = set()
        for call in entity.calls:
            if is_type_conversion(call.name, type_names):
                continue
            definition = self.repository.find_definition(call.name, prefer_file=entity.file)
            if call.name not in {e.callee_name for e in edges} and _routed_through(call.name, definition, edges):
                continue
            static_names.add(call.name)
            if definition is not None:
                internal_members.add(definition.name)
                node.children.append(self.build(definition, max_depth, depth + 1, path))
            else:
                node.children.append(CallTreeNode(
                    identity=f"external:{call.name}",
                    name=call.name,
                    depth=depth + 1,
                    external=True,
                    arguments=call.arguments,
                ))

        edges = [
            e for e in edges
            if e.callee_name not in static_names and e.method not in internal_members
        ]
        if edges:
            self._add_interface_calls(node, entity, edges)
        return node

    def _add_interface_calls(self, node: CallTreeNode, entity: Entity, edges: List[CallEdge]) -> None:
        if self.implementations is not None:
            self.implementations.bind_edges(edges)

        logger.debug("Interface calls found in %s: %s", entity.name, ", ".join(e.callee_name for e in edges))
        for edge in edges:
            member = edge.binding.member_for(edge.method) if edge.binding is not None else None
            node.children.append(CallTreeNode(
                identity=f"interface:{edge.callee_name}",
                name=edge.callee_name,
                depth=node.depth + 1,
                external=edge.definition is None and member is None,
                definition=edge.definition,
                interface_meta=InterfaceMeta(
                    interface=edge.interface,
                    pattern=edge.pattern,
                    binding=edge.binding,
                    implemented_member=member,
                ),
            ))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @staticmethod
    def max_depth(tree: CallTreeNode) -> int:
        """Deepest depth observed anywhere in *tree*."""
        return max(node.depth for node in tree.walk())

    @staticmethod
    def depth_distribution(tree: CallTreeNode) -> Dict[int, int]:
        depths: Dict[int, int] = {}
        for node in tree.walk():
            depths[node.depth] = depths.get(node.depth, 0) + 1
        return dict(sorted(depths.items()))


def describe(node: CallTreeNode) -> str:
    """One-line label used by the console tree and the DOT export."""
    meta = node.interface_meta
    if meta is not None:
        label = f"{node.name} (interface: {meta.interface}) [{meta.pattern}]"
        if meta.binding is not None:
            label += f" -> {meta.binding.contract_name}"
        if node.definition is not None:
            label += f" - {node.definition.signature}"
        return label
    if node.external:
        return f"{node.name} (external, {node.arguments or 0} args)"
    if node.definition is not None:
        return f"{node.name} - {node.definition.signature}"
    return node.name
