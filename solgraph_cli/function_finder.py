"""Start-function lookup and the repository slice a call tree touches."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import CallTreeNode, Entity
from .repository import EntityRepository

logger = logging.getLogger(__name__)


def available_functions(repository: EntityRepository) -> List[str]:
    names = [e.name for e in repository.of_kind("function") if e.name != "constructor"]
    return list(dict.fromkeys(names))


def find_function(repository: EntityRepository, name: str) -> Optional[Entity]:
    """Exact name first (first overload wins), then a signature containing *name*."""
    callable_entities = [e for e in repository if e.kind != "event"]
    matches = [e for e in callable_entities if e.name == name]
    if len(matches) > 1:
        logger.warning(
            "Multiple functions found with name %r: %s; using the first",
            name, "; ".join(m.signature for m in matches),
        )
    if matches:
        return matches[0]

    matches = [e for e in callable_entities if name in e.signature]
    if matches:
        logger.info("Found function by signature match: %s", matches[0].signature)
        return matches[0]
    return None


def extract_entities(
    repository: EntityRepository,
    tree: CallTreeNode,
    include_modifiers: bool = True,
    include_events: bool = False,
) -> List[Entity]:
    """Entities referenced by *tree*, plus the modifiers they invoke."""
    extracted: Dict[str, Entity] = {}

    for node in tree.walk():
        candidates = [node.definition]
        if node.interface_meta is not None:
            candidates.append(node.interface_meta.implemented_member)
        for entity in candidates:
            if entity is None:
                continue
            if entity.kind == "event" and not include_events:
                continue
            extracted.setdefault(entity.identity, entity)

    if include_modifiers:
        for entity in list(extracted.values()):
            for modifier_name in entity.modifiers:
                modifier = next(
                    (m for m in repository.named(modifier_name) if m.kind == "modifier"), None,
                )
                if modifier is not None:
                    extracted.setdefault(modifier.identity, modifier)

    return sorted(extracted.values(), key=lambda e: (e.name, e.file))


def group_by_file(entities: List[Entity]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for entity in entities:
        grouped.setdefault(entity.file or "unknown", []).append(entity.name)
    return grouped
