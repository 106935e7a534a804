"""JSON reports and Graphviz export for analysis runs."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from .call_tree import CallTreeBuilder, describe
from .function_finder import group_by_file
from .models import CallTreeNode, Entity
from .session import AnalysisSession

NODE_STYLES = {
    "internal": 'shape=box, style="rounded,filled", fillcolor="#dbeafe"',
    "external": 'shape=box, style="dashed", color="#9ca3af"',
    "interface": 'shape=box, style="rounded,filled", fillcolor="#fef3c7"',
}


def _resolved_calls(session: AnalysisSession, entity: Entity) -> List[Dict[str, Any]]:
    calls = []
    for call in entity.calls:
        definition = session.repository.find_definition(call.name, prefer_file=entity.file)
        if definition is not None:
            calls.append({
                "name": call.name,
                "type": "internal",
                "definition": {"signature": definition.signature, "file": definition.file},
            })
        else:
            calls.append({"name": call.name, "type": "external", "arguments": call.arguments})
    return calls


def build_analysis_report(session: AnalysisSession, include_source: bool = True) -> Dict[str, Any]:
    """Whole-repository report: every ingested declaration and import outcome."""
    repository = session.repository
    coverage = session.coverage()

    functions = []
    internal_calls = external_calls = 0
    for entity in repository.of_kind("function"):
        calls = _resolved_calls(session, entity)
        internal_calls += sum(1 for c in calls if c["type"] == "internal")
        external_calls += sum(1 for c in calls if c["type"] == "external")
        functions.append({**entity.to_dict(include_source), "calls": calls})

    return {
        "metadata": {
            "timestamp": datetime.now().isoformat(),
            "startedAt": session.started_at.isoformat(),
            "seeds": [s.blob_url for s in session.seeds],
            "repositories": sorted({f"{s.owner}/{s.repo}@{s.branch}" for s in session.seeds}),
            "filesAnalyzed": repository.files(),
            "unparsedFiles": list(session.unparsed),
            "fetchAttempts": session.fetch_attempts,
        },
        "dependencies": {
            "found": coverage.found,
            "resolved": {path: session.processed[path].blob_url for path in coverage.resolved},
            "failed": coverage.failed,
            "external": coverage.external,
            "unreachable": coverage.unreachable,
        },
        "stateVariables": [e.to_dict(include_source) for e in repository.of_kind("stateVariable")],
        "modifiers": [e.to_dict(include_source) for e in repository.of_kind("modifier")],
        "events": [e.to_dict(include_source) for e in repository.of_kind("event")],
        "functions": functions,
        "summary": {
            "totalFiles": len(repository.files()),
            "totalFunctions": len(functions),
            "totalModifiers": len(repository.of_kind("modifier")),
            "totalEvents": len(repository.of_kind("event")),
            "totalStateVariables": len(repository.of_kind("stateVariable")),
            "totalDependencies": len(coverage.found),
            "resolvedDependencies": len(coverage.resolved),
            "failedDependencies": len(coverage.failed),
            "successRate": round(coverage.success_rate, 4),
            "internalCalls": internal_calls,
            "externalCalls": external_calls,
        },
    }


def build_extraction_report(result, include_source: bool = True) -> Dict[str, Any]:
    """Call-tree report for one start function (an ``ExtractionResult``)."""
    tree: CallTreeNode = result.tree
    entity: Entity = result.entity
    files = sorted({e.file for e in result.entities} | {entity.file})
    coverage = result.coverage or result.session.coverage()

    bindings = {
        name: binding.to_dict()
        for name, binding in result.session.bindings.items()
        if binding is not None
    }
    return {
        "metadata": {
            "timestamp": datetime.now().isoformat(),
            "targetFunction": entity.name,
            "signature": entity.signature,
            "file": entity.file,
            "maxCallDepth": result.call_depth,
            "observedDepth": CallTreeBuilder.max_depth(tree),
            "filesInvolved": files,
            "dependencies": {
                **coverage.stats(),
                "external": coverage.external,
                "unreachable": coverage.unreachable,
            },
        },
        "callTree": tree.to_dict(),
        "implementations": bindings,
        "entities": [e.to_dict(include_source) for e in result.entities],
        "functionsByFile": group_by_file(result.entities),
        "depthDistribution": {str(k): v for k, v in CallTreeBuilder.depth_distribution(tree).items()},
    }


def save_report(report: Dict[str, Any], output_file: Path) -> Path:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return output_file


def export_dot(tree: CallTreeNode, output_file: Path) -> None:
    """Write *tree* as a Graphviz digraph; repeated entities share one node."""
    ids: Dict[str, str] = {}
    lines = ["digraph CallTree {", "  rankdir=LR;"]

    def node_id(node: CallTreeNode) -> str:
        if node.identity not in ids:
            ids[node.identity] = f"n{len(ids)}"
            lines.append(f'  {ids[node.identity]} [label="{_esc(describe(node))}", {NODE_STYLES[node.kind]}];')
        return ids[node.identity]

    edges = set()
    for parent in tree.walk():
        src = node_id(parent)
        for child in parent.children:
            edge = (src, node_id(child))
            if edge not in edges:
                edges.add(edge)
                lines.append(f"  {edge[0]} -> {edge[1]};")

    lines.append("}")
    output_file.write_text("\n".join(lines), encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
