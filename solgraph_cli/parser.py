"""Solidity declaration extractor built on Tree-sitter.

Uses the ``tree-sitter-solidity`` grammar to turn source text into
:class:`~solgraph_cli.models.Entity` objects (functions, modifiers,
events, state variables) plus the raw import paths of the file.
Tree-sitter produces a concrete syntax tree even for slightly broken
input, so a file with a few unsupported constructs still contributes
its readable declarations.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from .errors import ParseError
from .models import Entity, ImportReference, Parameter, ParseResult, RawCall

logger = logging.getLogger(__name__)

CONTAINER_TYPES = {"contract_declaration", "interface_declaration", "library_declaration"}
FUNCTION_TYPES = {"function_definition", "constructor_definition", "fallback_receive_definition"}
WRAPPER_TYPES = {"expression", "parenthesized_expression"}


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Abstract base class for source parsers."""

    @abstractmethod
    def parse(self, source: str, file: str) -> ParseResult:
        """Parse *source* (stored under *file*) or raise :class:`ParseError`."""
        ...


# ===================================================================
# Tree-sitter Solidity Parser
# ===================================================================

class TreeSitterSolidityParser(Parser):
    """Error-tolerant Solidity parser.

    With ``strict=True`` any syntax error raises :class:`ParseError`;
    otherwise only a tree that is both erroneous and empty of
    declarations does.
    """

    def __init__(self, include_source: bool = True, strict: bool = False) -> None:
        self.include_source = include_source
        self.strict = strict
        self._parser: Any = None

    def _load(self) -> Any:
        if self._parser is None:
            import tree_sitter_solidity
            from tree_sitter import Language, Parser as TSParser

            self._parser = TSParser(Language(tree_sitter_solidity.language()))
            logger.debug("Loaded tree-sitter Solidity grammar")
        return self._parser

    def parse(self, source: str, file: str) -> ParseResult:
        try:
            parser = self._load()
        except (ImportError, ValueError, TypeError) as exc:
            raise ParseError(file, f"Solidity grammar unavailable: {exc}") from exc

        tree = parser.parse(source.encode("utf-8"))
        root = tree.root_node
        result = ParseResult()

        for child in root.children:
            if child.type == "import_directive":
                raw = _import_source(child)
                if raw:
                    result.imports.append(ImportReference(raw_path=raw, origin_file=file))
            elif child.type in CONTAINER_TYPES:
                self._walk_container(child, file, result.entities)
            elif child.type in FUNCTION_TYPES or child.type == "event_definition":
                # free functions and file-level events
                self._extract_member(child, "", file, result.entities)

        if root.has_error:
            if self.strict or not (result.entities or result.imports):
                raise ParseError(file, "syntax error")
            logger.warning("Syntax errors in %s; keeping %d readable declarations", file, len(result.entities))
        return result

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _walk_container(self, node: Any, file: str, entities: List[Entity]) -> None:
        name_node = node.child_by_field_name("name")
        contract = _text(name_node) if name_node is not None else ""
        body = node.child_by_field_name("body") or _first_child(node, "contract_body")
        if body is None:
            return
        for member in body.named_children:
            self._extract_member(member, contract, file, entities)

    def _extract_member(self, node: Any, contract: str, file: str, entities: List[Entity]) -> None:
        kind = node.type
        if kind in FUNCTION_TYPES:
            entities.append(self._function(node, contract, file))
        elif kind == "modifier_definition":
            entities.append(self._modifier(node, contract, file))
        elif kind == "event_definition":
            entities.append(self._event(node, contract, file))
        elif kind == "state_variable_declaration":
            entity = self._state_variable(node, contract, file)
            if entity is not None:
                entities.append(entity)

    def _function(self, node: Any, contract: str, file: str) -> Entity:
        if node.type == "constructor_definition":
            name = "constructor"
        elif node.type == "fallback_receive_definition":
            name = "receive" if any(c.type == "receive" for c in node.children) else "fallback"
        else:
            name_node = node.child_by_field_name("name")
            name = _text(name_node) if name_node is not None else "<unnamed>"

        params = [_parameter(p) for p in node.children if p.type == "parameter"]
        returns_node = node.child_by_field_name("return_type") or _first_child(node, "return_type_definition")
        returns = [_parameter(p) for p in returns_node.named_children if p.type == "parameter"] if returns_node else []

        visibility = _keyword(node, "visibility") or ("public" if name == "constructor" else "internal")
        mutability = _keyword(node, "state_mutability")
        if mutability is None:
            mutability = "payable" if any(c.type == "payable" for c in node.children) else "nonpayable"

        body = node.child_by_field_name("body") or _first_child(node, "function_body")
        return Entity(
            kind="function",
            name=name,
            signature=build_signature(name, params, returns, visibility, mutability),
            file=file,
            contract=contract,
            visibility=visibility,
            state_mutability=mutability,
            parameters=params,
            return_parameters=returns,
            modifiers=[_modifier_name(m) for m in node.children if m.type == "modifier_invocation"],
            calls=collect_calls(body) if body is not None else [],
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            raw_source=_text(node) if self.include_source else None,
        )

    def _modifier(self, node: Any, contract: str, file: str) -> Entity:
        name = _text(node.child_by_field_name("name"))
        params = [_parameter(p) for p in node.children if p.type == "parameter"]
        body = node.child_by_field_name("body") or _first_child(node, "function_body")
        return Entity(
            kind="modifier",
            name=name,
            signature=f"{name}({_param_list(params)})",
            file=file,
            contract=contract,
            parameters=params,
            calls=collect_calls(body) if body is not None else [],
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            raw_source=_text(node) if self.include_source else None,
        )

    def _event(self, node: Any, contract: str, file: str) -> Entity:
        name = _text(node.child_by_field_name("name"))
        params: List[Parameter] = []
        for p in node.children:
            if p.type == "event_parameter":
                param = _parameter(p)
                param.indexed = any(c.type == "indexed" for c in p.children)
                params.append(param)
        return Entity(
            kind="event",
            name=name,
            signature=f"{name}({_param_list(params)})",
            file=file,
            contract=contract,
            visibility="public",
            parameters=params,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            raw_source=_text(node) if self.include_source else None,
        )

    def _state_variable(self, node: Any, contract: str, file: str) -> Optional[Entity]:
        name_node = node.child_by_field_name("name")
        type_node = node.child_by_field_name("type")
        if name_node is None:
            return None
        var_type = normalize_type(_text(type_node)) if type_node is not None else "unknown"
        visibility = _keyword(node, "visibility") or "internal"
        name = _text(name_node)
        return Entity(
            kind="stateVariable",
            name=name,
            signature=f"{var_type} {visibility} {name}",
            file=file,
            contract=contract,
            visibility=visibility,
            variable_type=var_type,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            raw_source=_text(node) if self.include_source else None,
        )


# ===================================================================
# Shared Helpers
# ===================================================================

def build_signature(
    name: str,
    params: List[Parameter],
    returns: List[Parameter],
    visibility: str = "internal",
    mutability: str = "nonpayable",
) -> str:
    """``name(type name, ...) [visibility] [mutability] [returns (types)]``."""
    signature = f"{name}({_param_list(params)})"
    if visibility and visibility != "internal":
        signature += f" {visibility}"
    if mutability and mutability != "nonpayable":
        signature += f" {mutability}"
    if returns:
        signature += f" returns ({', '.join(p.type for p in returns)})"
    return signature


def normalize_type(text: str) -> str:
    """Collapse whitespace in a type so textual comparisons are stable."""
    text = re.sub(r"\s+", " ", text.strip())
    text = re.sub(r"\s*=>\s*", " => ", text)
    text = re.sub(r"\(\s+", "(", text)
    text = re.sub(r"\s+\)", ")", text)
    return re.sub(r"\s*(\[|\])\s*", r"\1", text)


def collect_calls(body: Any) -> List[RawCall]:
    """Return every call site inside *body*, in source order."""
    calls: List[RawCall] = []

    def _find(node: Any) -> None:
        if node.type == "call_expression":
            func = node.child_by_field_name("function") or (node.named_children[0] if node.named_children else None)
            name = resolve_call_name(func) if func is not None else None
            if name:
                args = [c for c in node.named_children if c.id != func.id and c.type != "comment"]
                calls.append(RawCall(name=name, arguments=len(args)))
        elif node.type == "emit_statement":
            target = node.child_by_field_name("name")
            name = resolve_call_name(target) if target is not None else None
            if name:
                args = [c for c in node.named_children if c.type == "call_argument"]
                calls.append(RawCall(name=name, arguments=len(args)))
        for child in node.children:
            _find(child)

    _find(body)
    return calls


def resolve_call_name(node: Any) -> Optional[str]:
    """Resolve a call target to a name; member calls on call results keep only the member."""
    while node.type in WRAPPER_TYPES and node.named_children:
        node = node.named_children[0]
    if node.type == "identifier":
        return _text(node)
    if node.type == "member_expression":
        prop = node.child_by_field_name("property")
        obj = node.child_by_field_name("object")
        if prop is None:
            return None
        base = resolve_call_name(obj) if obj is not None else None
        member = _text(prop)
        return f"{base}.{member}" if base else member
    return None


def _import_source(node: Any) -> str:
    source = node.child_by_field_name("source") or _first_child(node, "string")
    if source is None:
        return ""
    return _text(source).strip().strip("\"'")


def _parameter(node: Any) -> Parameter:
    type_node = node.child_by_field_name("type")
    name_node = node.child_by_field_name("name")
    return Parameter(
        name=_text(name_node) if name_node is not None else "",
        type=normalize_type(_text(type_node)) if type_node is not None else "unknown",
    )


def _param_list(params: List[Parameter]) -> str:
    return ", ".join(f"{p.type} {p.name}".strip() for p in params)


def _modifier_name(node: Any) -> str:
    return _text(node).split("(", 1)[0].strip()


def _keyword(node: Any, node_type: str) -> Optional[str]:
    found = _first_child(node, node_type)
    return _text(found).strip() if found is not None else None


def _first_child(node: Any, node_type: str) -> Optional[Any]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _text(node: Any) -> str:
    return node.text.decode("utf-8") if node is not None else ""
