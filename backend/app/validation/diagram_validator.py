"""
Diagram Validator - Structural checks on a Mermaid flowchart source.

Catches issues like:
- Missing, repeated or misplaced direction directive
- Edges or class assignments that reference undeclared nodes
- Node ids declared twice with different labels
- Empty labels
- Orphaned nodes and self loops

The validator never blocks rendering; the render cascade logs its summary
and the API reports it.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional
from enum import Enum
from collections import Counter

from app.dsl.mermaid import VALID_DIRECTIONS, parse_mermaid, validate_mermaid
from app.ir.diagram import DiagramGraph


class ValidationSeverity(Enum):
    ERROR = "error"      # Diagram breaks the DiagramSource invariants
    WARNING = "warning"  # Diagram renders but has issues
    INFO = "info"        # Suggestions for improvement


@dataclass
class ValidationIssue:
    """A single validation issue found in the diagram"""
    severity: ValidationSeverity
    code: str           # Machine-readable issue code
    message: str        # Human-readable description
    node_id: Optional[str] = None
    edge_info: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "node_id": self.node_id,
            "edge_info": self.edge_info,
            "suggestion": self.suggestion,
        }


@dataclass
class DiagramValidationResult:
    """Result of diagram validation"""
    is_valid: bool
    is_complete: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == ValidationSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == ValidationSeverity.WARNING)

    @property
    def info_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == ValidationSeverity.INFO)

    def codes(self) -> List[str]:
        return [i.code for i in self.issues]

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "is_complete": self.is_complete,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "info_count": self.info_count,
            "issues": [i.to_dict() for i in self.issues],
            "stats": self.stats,
        }

    def get_summary(self) -> str:
        """Get human-readable summary"""
        status = "Valid" if self.is_valid else "Invalid"
        completeness = "Complete" if self.is_complete else "Incomplete"
        return (
            f"{status} | {completeness} | "
            f"Errors: {self.error_count}, Warnings: {self.warning_count}, Info: {self.info_count}"
        )


class DiagramValidator:
    """
    Validates DiagramSource strings.

    Usage:
        validator = DiagramValidator()
        result = validator.validate(source)

        if not result.is_valid:
            for issue in result.issues:
                logger.warning("[%s] %s", issue.severity.value, issue.message)
    """

    KNOWN_CLASSES = {"human", "ai"}

    def validate(self, source: str) -> DiagramValidationResult:
        """Validate the entire diagram source."""
        issues: List[ValidationIssue] = []

        if not source or not source.strip():
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="EMPTY_DIAGRAM",
                message="Diagram source is empty",
                suggestion="Provide at least a directive and one node",
            ))
            return DiagramValidationResult(
                is_valid=False,
                is_complete=False,
                issues=issues,
                stats={"nodes": 0, "edges": 0, "classes": 0},
            )

        graph = parse_mermaid(source)

        issues.extend(self._check_directive(source, graph))
        issues.extend(self._check_conflicting_ids(graph))
        issues.extend(self._check_empty_labels(graph))
        issues.extend(self._check_edge_references(graph))
        issues.extend(self._check_class_references(graph))
        issues.extend(self._check_orphaned_nodes(graph))
        issues.extend(self._check_self_loops(graph))

        has_errors = any(i.severity == ValidationSeverity.ERROR for i in issues)
        has_warnings = any(i.severity == ValidationSeverity.WARNING for i in issues)

        return DiagramValidationResult(
            is_valid=not has_errors,
            is_complete=not has_errors and not has_warnings and bool(graph.nodes),
            issues=issues,
            stats={
                "nodes": len(graph.nodes),
                "edges": len(graph.edges),
                "classes": len(graph.classes),
                "directives": graph.directive_count,
            },
        )

    # ============================================================
    # CHECKS
    # ============================================================

    def _check_directive(self, source: str, graph: DiagramGraph) -> List[ValidationIssue]:
        issues = []
        if graph.directive_count == 0:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="MISSING_DIRECTIVE",
                message="No flowchart direction directive found",
                suggestion="Start the diagram with 'flowchart TD'",
            ))
        elif graph.directive_count > 1:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="MULTIPLE_DIRECTIVES",
                message=f"Found {graph.directive_count} direction directives, expected exactly one",
            ))
        elif not graph.directive_first or graph.direction not in VALID_DIRECTIONS:
            issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                code="INVALID_DIRECTIVE",
                message="The direction directive must be the first line and name a valid direction",
            ))
        elif not validate_mermaid(source):
            issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                code="UNSAFE_MARKUP",
                message="Diagram contains markup or code fences the renderer may reject",
                suggestion="Remove HTML tags and ``` fences from labels",
            ))
        return issues

    def _check_conflicting_ids(self, graph: DiagramGraph) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                code="DUPLICATE_NODE_ID",
                message=f"Node '{node_id}' is declared with different labels; the last one wins",
                node_id=node_id,
                suggestion="Give every step its own id",
            )
            for node_id in graph.conflicting_ids
        ]

    def _check_empty_labels(self, graph: DiagramGraph) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                code="EMPTY_LABEL",
                message=f"Node '{node.id}' has an empty label",
                node_id=node.id,
            )
            for node in graph.nodes
            if not node.label.strip()
        ]

    def _check_edge_references(self, graph: DiagramGraph) -> List[ValidationIssue]:
        issues = []
        declared = set(graph.node_ids)
        for edge in graph.edges:
            edge_info = f"{edge.source} --> {edge.target}"
            if edge.source not in declared:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="MISSING_SOURCE_NODE",
                    message=f"Edge source '{edge.source}' is not declared",
                    node_id=edge.source,
                    edge_info=edge_info,
                ))
            if edge.target not in declared:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="MISSING_TARGET_NODE",
                    message=f"Edge target '{edge.target}' is not declared",
                    node_id=edge.target,
                    edge_info=edge_info,
                ))
        return issues

    def _check_class_references(self, graph: DiagramGraph) -> List[ValidationIssue]:
        issues = []
        declared = set(graph.node_ids)
        known = self.KNOWN_CLASSES | set(graph.class_defs)
        for assignment in graph.classes:
            if assignment.node_id not in declared:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    code="UNDECLARED_CLASS_TARGET",
                    message=f"Class '{assignment.class_name}' assigned to undeclared node '{assignment.node_id}'",
                    node_id=assignment.node_id,
                ))
            if assignment.class_name not in known:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    code="UNKNOWN_CLASS",
                    message=f"Class '{assignment.class_name}' has no classDef",
                    node_id=assignment.node_id,
                ))
        return issues

    def _check_orphaned_nodes(self, graph: DiagramGraph) -> List[ValidationIssue]:
        if len(graph.nodes) < 2:
            return []
        connected = Counter()
        for edge in graph.edges:
            connected[edge.source] += 1
            connected[edge.target] += 1
        return [
            ValidationIssue(
                severity=ValidationSeverity.INFO,
                code="ORPHANED_NODE",
                message=f"Node '{node.id}' has no connections",
                node_id=node.id,
            )
            for node in graph.nodes
            if connected[node.id] == 0
        ]

    def _check_self_loops(self, graph: DiagramGraph) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                severity=ValidationSeverity.INFO,
                code="SELF_LOOP",
                message=f"Node '{edge.source}' points to itself",
                node_id=edge.source,
                edge_info=f"{edge.source} --> {edge.target}",
            )
            for edge in graph.edges
            if edge.source == edge.target
        ]


# ============================================================
# MODULE HELPERS
# ============================================================

def validate_diagram(source: str) -> DiagramValidationResult:
    return DiagramValidator().validate(source)


def get_validation_summary(source: str) -> str:
    return validate_diagram(source).get_summary()
