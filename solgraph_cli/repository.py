"""Append-only in-memory store of parsed declarations for one analysis run."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .models import Entity

logger = logging.getLogger(__name__)

_INTERFACE_NAME = re.compile(r"^I[A-Z]")


def file_stem(file: str) -> str:
    return posixpath.splitext(posixpath.basename(file))[0]


def looks_like_interface_file(file: str) -> bool:
    """``IFoo.sol`` or anything under a path mentioning "interface"."""
    return bool(_INTERFACE_NAME.match(posixpath.basename(file))) or "interface" in file.lower()


class EntityRepository:
    """Entities keyed by identity ``(file, name, signature)``.

    Entities are only ever added. Re-adding an identity that already exists
    is a no-op, so ingesting the same file twice cannot duplicate anything.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, Entity] = {}
        self._by_file: Dict[str, List[Entity]] = {}
        self._by_name: Dict[str, List[Entity]] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def __contains__(self, identity: object) -> bool:
        return identity in self._entities

    def add(self, entity: Entity) -> bool:
        if entity.identity in self._entities:
            return False
        self._entities[entity.identity] = entity
        self._by_file.setdefault(entity.file, []).append(entity)
        self._by_name.setdefault(entity.name, []).append(entity)
        return True

    def add_all(self, entities: Iterable[Entity]) -> int:
        return sum(1 for entity in entities if self.add(entity))

    def get(self, identity: str) -> Optional[Entity]:
        return self._entities.get(identity)

    def files(self) -> List[str]:
        return list(self._by_file)

    def in_file(self, file: str) -> List[Entity]:
        return list(self._by_file.get(file, []))

    def named(self, name: str) -> List[Entity]:
        return list(self._by_name.get(name, []))

    def of_kind(self, *kinds: str) -> List[Entity]:
        return [e for e in self._entities.values() if e.kind in kinds]

    def contract_names(self) -> Set[str]:
        """Names of every contract, interface and library seen so far."""
        return {e.contract for e in self._entities.values() if e.contract}

    def files_containing(self, fragment: str) -> List[str]:
        """Files whose basename contains *fragment*, exact stem matches first."""
        matches = [f for f in self._by_file if fragment in posixpath.basename(f)]
        return sorted(matches, key=lambda f: file_stem(f) != fragment)

    def find_definition(self, call_name: str, prefer_file: str = "") -> Optional[Entity]:
        """Resolve a raw call name to a function or event definition.

        Matches by name or by a signature beginning ``name(``. Definitions in
        *prefer_file* win; otherwise insertion order decides.
        """
        candidates = [
            e for e in self._by_name.get(call_name, []) if e.kind in ("function", "event")
        ]
        if not candidates:
            prefix = f"{call_name}("
            candidates = [
                e for e in self._entities.values()
                if e.kind in ("function", "event") and e.signature.startswith(prefix)
            ]
        if not candidates:
            return None
        for entity in candidates:
            if entity.file == prefer_file:
                return entity
        return candidates[0]
