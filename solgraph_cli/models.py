"""Core data models shared by resolution, ingestion, detection, and tree building."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class RepoCoords:
    """Repository coordinate plus the directory of the file being resolved from."""

    owner: str
    repo: str
    branch: str
    base_path: str = ""

    def locate(self, path: str) -> "SourceLocation":
        return SourceLocation(self.owner, self.repo, self.branch, path)


@dataclass(frozen=True)
class SourceLocation:
    """A fetchable file: repository coordinate plus repository-relative path."""

    owner: str
    repo: str
    branch: str
    path: str

    @classmethod
    def from_url(cls, url: str) -> "SourceLocation":
        """Parse a GitHub blob URL or a raw.githubusercontent.com URL."""
        parsed = urlparse(url.strip())
        parts = [p for p in parsed.path.split("/") if p]
        if parsed.hostname == "github.com" and len(parts) >= 5 and parts[2] == "blob":
            return cls(parts[0], parts[1], parts[3], "/".join(parts[4:]))
        if parsed.hostname == "raw.githubusercontent.com" and len(parts) >= 4:
            return cls(parts[0], parts[1], parts[2], "/".join(parts[3:]))
        raise ValueError(f"Not a GitHub file URL: {url}")

    @property
    def filename(self) -> str:
        return posixpath.basename(self.path)

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path)

    @property
    def coords(self) -> RepoCoords:
        return RepoCoords(self.owner, self.repo, self.branch, self.directory)

    @property
    def blob_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/blob/{self.branch}/{self.path}"

    @property
    def raw_url(self) -> str:
        return f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.branch}/{self.path}"

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}:{self.path}"

    def short(self) -> str:
        parts = self.path.split("/")
        return f".../{'/'.join(parts[-2:])}" if len(parts) > 2 else self.path


@dataclass
class Parameter:
    name: str
    type: str
    indexed: bool = False


@dataclass
class RawCall:
    """A call site recorded by the parser before any resolution."""

    name: str
    arguments: int = 0


@dataclass
class Entity:
    """A parsed declaration. Identity is ``(file, name, signature)``."""

    kind: str
    name: str
    signature: str
    file: str
    contract: str = ""
    visibility: str = "internal"
    state_mutability: str = "nonpayable"
    parameters: List[Parameter] = field(default_factory=list)
    return_parameters: List[Parameter] = field(default_factory=list)
    modifiers: List[str] = field(default_factory=list)
    calls: List[RawCall] = field(default_factory=list)
    variable_type: str = ""
    start_line: int = 0
    end_line: int = 0
    raw_source: Optional[str] = None

    @property
    def identity(self) -> str:
        return f"{self.file}:{self.name}:{self.signature}"

    @property
    def owner_name(self) -> str:
        """Declaring contract, or the file stem when the contract is unknown."""
        if self.contract:
            return self.contract
        return posixpath.splitext(posixpath.basename(self.file))[0]

    def to_dict(self, include_source: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.kind,
            "name": self.name,
            "signature": self.signature,
            "file": self.file,
            "contract": self.contract,
            "visibility": self.visibility,
            "parameters": [vars(p).copy() for p in self.parameters],
            "location": {"start": self.start_line, "end": self.end_line},
        }
        if self.kind == "function":
            payload["stateMutability"] = self.state_mutability
            payload["returnParameters"] = [vars(p).copy() for p in self.return_parameters]
            payload["modifiers"] = list(self.modifiers)
        if self.kind == "stateVariable":
            payload["variableType"] = self.variable_type
        if include_source and self.raw_source is not None:
            payload["sourceCode"] = self.raw_source
        return payload


@dataclass
class ImportReference:
    raw_path: str
    origin_file: str


@dataclass
class FetchedSource:
    location: SourceLocation
    content: str


@dataclass
class ParseResult:
    entities: List[Entity] = field(default_factory=list)
    imports: List[ImportReference] = field(default_factory=list)


@dataclass
class MatchedMember:
    interface_member: Entity
    impl_member: Entity


@dataclass
class ImplementationBinding:
    interface_name: str
    implementation_file: str
    contract_name: str
    match_ratio: float
    matched_members: List[MatchedMember] = field(default_factory=list)
    strategy: str = "name"

    def member_for(self, method: str) -> Optional[Entity]:
        for match in self.matched_members:
            if match.interface_member.name == method:
                return match.impl_member
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interface": self.interface_name,
            "contractName": self.contract_name,
            "file": self.implementation_file,
            "matchRatio": round(self.match_ratio, 4),
            "strategy": self.strategy,
            "matchedMembers": [
                {"interface": m.interface_member.signature, "implementation": m.impl_member.signature}
                for m in self.matched_members
            ],
        }


@dataclass
class CallEdge:
    caller: str
    callee_name: str
    kind: str
    definition: Optional[Entity] = None
    arguments: int = 0
    interface: str = ""
    method: str = ""
    pattern: str = ""
    binding: Optional[ImplementationBinding] = None


@dataclass
class InterfaceMeta:
    interface: str
    pattern: str
    binding: Optional[ImplementationBinding] = None
    implemented_member: Optional[Entity] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"interface": self.interface, "pattern": self.pattern}
        if self.binding is not None:
            payload["implementation"] = self.binding.to_dict()
            if self.implemented_member is not None:
                payload["implementation"]["implementedFunction"] = self.implemented_member.signature
        return payload


@dataclass
class CallTreeNode:
    identity: str
    name: str
    depth: int
    children: List["CallTreeNode"] = field(default_factory=list)
    external: bool = False
    definition: Optional[Entity] = None
    arguments: Optional[int] = None
    interface_meta: Optional[InterfaceMeta] = None

    @property
    def kind(self) -> str:
        if self.interface_meta is not None:
            return "interface"
        return "external" if self.external else "internal"

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "depth": self.depth, "type": self.kind}
        if self.definition is not None:
            payload["signature"] = self.definition.signature
            payload["file"] = self.definition.file
        if self.external:
            payload["external"] = True
        if self.arguments is not None:
            payload["arguments"] = self.arguments
        if self.interface_meta is not None:
            payload.update(self.interface_meta.to_dict())
        payload["calls"] = [child.to_dict() for child in self.children]
        return payload


@dataclass
class CoverageReport:
    """Import coverage after ingestion."""

    found: List[str]
    resolved: List[str]
    external: List[str]
    unreachable: List[str]

    @property
    def failed(self) -> List[str]:
        return self.external + self.unreachable

    @property
    def success_rate(self) -> float:
        total = len(self.resolved) + len(self.failed)
        return len(self.resolved) / total if total else 0.0

    def stats(self) -> Dict[str, Any]:
        """Import counts and the share of resolvable imports that resolved."""
        return {
            "found": len(self.found),
            "resolved": len(self.resolved),
            "failed": len(self.failed),
            "successRate": round(self.success_rate, 4),
        }
