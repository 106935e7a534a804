"""Heuristic detection of calls routed through interface-typed handles.

Dynamic dispatch through an interface looks the same as any other member
call once parsed, so detection works on the function's raw text with four
independent matchers, applied from most to least precise:

1. ``direct``  : ``IName(expr).method(...)``
2. ``variable``: ``IName handle = IName(expr);`` … ``handle.method(...)``
3. ``method``  : ``x.method(...)`` where ``method`` is a known interface member
4. ``byname``  : any known interface member called by name

Results are merged in that order; an edge found earlier is never replaced
or removed by a later matcher.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .models import CallEdge, Entity
from .repository import looks_like_interface_file

logger = logging.getLogger(__name__)

RESERVED_RECEIVERS = {"msg", "block", "tx", "this", "super"}

DIRECT_CAST = re.compile(r"(\w+)\([^)]+\)\.(\w+)\s*\(")
HANDLE_DECLARATION = re.compile(r"(\w+)\s+(\w+)\s*=\s*(\w+)\([^)]+\);")
MEMBER_CALL = re.compile(r"(\w+)\.(\w+)\s*\(")
_COMMENTS = re.compile(r"/\*.*?\*/|//[^\n]*", re.DOTALL)
_DECLARATION_HEADS = re.compile(r"\b(?:function|modifier|event)\s+\w+")

Matcher = Callable[[str, Sequence[Entity]], List[CallEdge]]


def strip_comments(text: str) -> str:
    return _COMMENTS.sub(" ", text)


def _member_in_file(entities: Sequence[Entity], method: str, fragment: str) -> Optional[Entity]:
    for entity in entities:
        if entity.name == method and entity.kind != "event" and fragment in entity.file.rsplit("/", 1)[-1]:
            return entity
    return None


def _edge(interface: str, method: str, pattern: str, definition: Optional[Entity]) -> CallEdge:
    return CallEdge(
        caller="",
        callee_name=f"{interface}.{method}",
        kind="interface",
        definition=definition,
        interface=interface,
        method=method,
        pattern=pattern,
    )


# ===================================================================
# Matchers
# ===================================================================

def match_direct_cast(text: str, entities: Sequence[Entity]) -> List[CallEdge]:
    """``Name(expr).method(args)``: ``Name`` is taken as the interface."""
    edges = []
    for match in DIRECT_CAST.finditer(strip_comments(text)):
        interface, method = match.group(1), match.group(2)
        edges.append(_edge(interface, method, "direct", _member_in_file(entities, method, interface)))
    return edges


def match_declared_handles(text: str, entities: Sequence[Entity]) -> List[CallEdge]:
    """``Type handle = Type(expr);`` then ``handle.method(args)`` anywhere in *text*."""
    text = strip_comments(text)
    handles: Dict[str, str] = {}
    for match in HANDLE_DECLARATION.finditer(text):
        handles[match.group(2)] = match.group(1)

    edges = []
    for match in MEMBER_CALL.finditer(text):
        receiver, method = match.group(1), match.group(2)
        if receiver in RESERVED_RECEIVERS or receiver not in handles:
            continue
        interface = handles[receiver]
        edges.append(_edge(interface, method, "variable", _member_in_file(entities, method, interface)))
    return edges


def match_member_calls(text: str, entities: Sequence[Entity]) -> List[CallEdge]:
    """``x.method(args)`` where ``method`` is declared interface-side or ``external``."""
    edges = []
    for match in MEMBER_CALL.finditer(strip_comments(text)):
        receiver, method = match.group(1), match.group(2)
        if receiver in RESERVED_RECEIVERS:
            continue
        definition = next(
            (
                e for e in entities
                if e.name == method and e.kind != "event"
                and (looks_like_interface_file(e.file) or e.visibility == "external")
            ),
            None,
        )
        if definition is not None:
            edges.append(_edge(definition.owner_name, method, "method", definition))
    return edges


def match_member_names(text: str, entities: Sequence[Entity]) -> List[CallEdge]:
    """Any interface-file function whose name appears as a call."""
    text = _DECLARATION_HEADS.sub(" ", strip_comments(text))
    edges = []
    for entity in entities:
        if entity.kind != "function" or not looks_like_interface_file(entity.file):
            continue
        if re.search(rf"\b{re.escape(entity.name)}\s*\(", text):
            edges.append(_edge(entity.owner_name, entity.name, "byname", entity))
    return edges


@dataclass(frozen=True)
class Pattern:
    name: str
    matcher: Matcher
    skip_known_methods: bool = False


PATTERNS: List[Pattern] = [
    Pattern("direct", match_direct_cast),
    Pattern("variable", match_declared_handles),
    Pattern("method", match_member_calls),
    Pattern("byname", match_member_names, skip_known_methods=True),
]


class InterfaceCallDetector:
    """Run the matchers in priority order and merge their results."""

    def __init__(self, patterns: Optional[List[Pattern]] = None) -> None:
        self.patterns = patterns if patterns is not None else PATTERNS

    def extract_calls(self, text: str, entities: Sequence[Entity], caller: str = "") -> List[CallEdge]:
        merged: List[CallEdge] = []
        names = set()
        methods = set()
        for pattern in self.patterns:
            for edge in pattern.matcher(text, entities):
                if edge.callee_name in names:
                    continue
                if pattern.skip_known_methods and edge.method in methods:
                    continue
                edge.caller = caller
                names.add(edge.callee_name)
                methods.add(edge.method)
                merged.append(edge)
                logger.debug(
                    "  %s call: %s (found def: %s)", pattern.name, edge.callee_name, edge.definition is not None,
                )
        return merged
