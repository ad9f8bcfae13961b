"""Structural validation: duplicate ids, dangling edges, loops, duplicates, reversed connections"""

import pytest

from socdrc.ir.diagram import Diagram
from socdrc.ir.errors import StructuralValidationError
from socdrc.validation.diagram_validator import (
    AutoFixAction,
    DiagramValidator,
    DuplicateStrategy,
    IssueSeverity,
    IssueType,
    ValidationIssue,
    get_validation_summary,
    raise_on_errors,
    validate_diagram,
)


def intf(id, direction="master", **extra):
    return {"id": id, "direction": direction, **extra}


def node(id, *interfaces, x=0, y=0, label=None, category="CPU", **props):
    return {
        "id": id,
        "category": category,
        "position": {"x": x, "y": y},
        "interfaces": list(interfaces),
        "properties": {"label": label or id, **props},
    }


def edge(source, target, source_handle=None, target_handle=None, id=None):
    data = {"source": source, "target": target, "sourceHandle": source_handle, "targetHandle": target_handle}
    if id:
        data["id"] = id
    return data


def diagram(nodes, edges=()):
    return Diagram.from_dict({"nodes": list(nodes), "edges": list(edges)})


def of_type(result, issue_type):
    return [i for i in result.issues if i.type == issue_type]


def test_clean_diagram_is_valid():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"), category="Memory")],
        [edge("cpu0", "mem0", "m0", "s0")],
    )
    result = validate_diagram(d)
    assert result.is_valid
    assert result.issues == []
    assert result.get_summary() == "Valid | Errors: 0, Warnings: 0"
    assert result.stats == {
        "nodes": 2, "edges": 1, "interfaces": 2, "duplicate_node_groups": 0, "dangling_edges": 0,
    }


def test_duplicates_at_different_positions_are_renamed():
    d = diagram([node("cpu0", intf("m0"), x=0, y=0), node("cpu0", intf("m1"), x=300, y=0)])
    result = validate_diagram(d)

    [issue] = of_type(result, IssueType.DUPLICATE_NODE_ID)
    assert issue.severity == IssueSeverity.ERROR
    assert issue.auto_fix == AutoFixAction.RENAME
    assert issue.node_id == "cpu0"
    assert issue.details.duplicate_strategy == DuplicateStrategy.DIFFERENT_POSITION
    assert issue.details.node_indices == [0, 1]
    assert issue.details.positions == [{"x": 0, "y": 0}, {"x": 300, "y": 0}]
    assert not result.is_valid


def test_exact_duplicates_are_removed():
    d = diagram([node("mem0", intf("s0", "slave"), x=100, y=100)] * 2)
    [issue] = validate_diagram(d).issues
    assert issue.auto_fix == AutoFixAction.REMOVE_DUPLICATE
    assert issue.details.duplicate_strategy == DuplicateStrategy.EXACT_DUPLICATE


def test_same_position_with_different_type_is_offset():
    d = diagram([
        node("periph0", intf("s0", "slave"), x=200, y=200, type="UART"),
        node("periph0", intf("s0", "slave"), x=200, y=200, type="SPI"),
    ])
    [issue] = validate_diagram(d).issues
    assert issue.auto_fix == AutoFixAction.OFFSET_POSITION
    assert issue.details.duplicate_strategy == DuplicateStrategy.SAME_POSITION_DIFFERENT_PROPS
    assert [p["type"] for p in issue.details.properties] == ["UART", "SPI"]


def test_position_epsilon_decides_same_position():
    nodes = [node("n", x=0, y=0), node("n", x=8, y=-8)]
    [issue] = DiagramValidator().validate(diagram(nodes)).issues
    assert issue.details.duplicate_strategy == DuplicateStrategy.EXACT_DUPLICATE

    [issue] = DiagramValidator(position_epsilon=5).validate(diagram(nodes)).issues
    assert issue.details.duplicate_strategy == DuplicateStrategy.DIFFERENT_POSITION


def test_missing_node_and_missing_interface_are_errors():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [
            edge("cpu0", "ghost", "m0", "x"),
            edge("cpu0", "mem0", "m9", "s9"),
            edge("cpu0", "mem0", "m0", "s9"),
        ],
    )
    result = validate_diagram(d)

    assert [(i.type, i.edge_index) for i in result.issues] == [
        (IssueType.MISSING_NODE, 0),
        (IssueType.MISSING_INTERFACE, 1),
        (IssueType.MISSING_INTERFACE, 2),
    ]
    assert all(i.auto_fix == AutoFixAction.REMOVE for i in result.issues)
    assert "'ghost'" in result.issues[0].description
    assert "Source interface 'm9'" in result.issues[1].description
    assert "Target interface 's9'" in result.issues[2].description
    assert result.stats["dangling_edges"] == 3


def test_interfaces_of_all_duplicate_copies_count_for_dangling_check():
    d = diagram(
        [node("mem0", intf("s0", "slave")), node("mem0", intf("s1", "slave")), node("cpu0", intf("m0"))],
        [edge("cpu0", "mem0", "m0", "s1")],
    )
    assert of_type(validate_diagram(d), IssueType.MISSING_INTERFACE) == []


def test_self_loop_is_a_warning():
    d = diagram([node("cpu0", intf("m0"), intf("m1"))], [edge("cpu0", "cpu0", "m0", "m1")])
    result = validate_diagram(d)

    [issue] = result.issues
    assert issue.type == IssueType.SELF_LOOP
    assert issue.severity == IssueSeverity.WARNING
    assert issue.auto_fix == AutoFixAction.REMOVE
    assert result.is_valid
    assert result.get_summary() == "Valid | Errors: 0, Warnings: 1"


def test_dangling_self_loop_is_reported_once():
    d = diagram([node("cpu0", intf("m0"))], [edge("cpu0", "cpu0", "m0", "nope")])
    assert [i.type for i in validate_diagram(d).issues] == [IssueType.MISSING_INTERFACE]


def test_duplicate_and_mirrored_edges_keep_the_first():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [
            edge("cpu0", "mem0", "m0", "s0", id="e1"),
            edge("cpu0", "mem0", "m0", "s0", id="e2"),
            edge("mem0", "cpu0", "s0", "m0", id="e3"),
        ],
    )
    duplicates = of_type(validate_diagram(d), IssueType.DUPLICATE_EDGE)

    assert [(i.edge_index, i.edge_id) for i in duplicates] == [(1, "e2"), (2, "e3")]
    assert [i.details.duplicate_of for i in duplicates] == [0, 0]
    assert [i.details.reversed_tuple for i in duplicates] == [False, True]
    assert all(i.auto_fix == AutoFixAction.REMOVE_DUPLICATE for i in duplicates)
    # the mirrored copy is removed, not also flagged as reversed
    assert of_type(validate_diagram(d), IssueType.REVERSED_CONNECTION) == []


def test_slave_to_master_edge_is_flagged_reversed():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [edge("mem0", "cpu0", "s0", "m0")],
    )
    [issue] = validate_diagram(d).issues
    assert issue.type == IssueType.REVERSED_CONNECTION
    assert issue.severity == IssueSeverity.WARNING
    assert issue.auto_fix == AutoFixAction.REVERSE
    assert issue.details.source_node_name == "mem0"


def test_reversed_check_needs_both_handles():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [edge("mem0", "cpu0", "s0", None)],
    )
    assert validate_diagram(d).issues == []


def test_validation_does_not_modify_the_diagram():
    raw = {
        "nodes": [node("a", intf("m0")), node("a", intf("m0"), x=500)],
        "edges": [edge("a", "b", "m0", "s0")],
    }
    d = Diagram.from_dict(raw)
    before = d.to_dict()
    validate_diagram(d)
    assert d.to_dict() == before


def test_raise_on_errors_carries_the_error_issues():
    d = diagram([node("cpu0", intf("m0"), intf("m1"))], [
        edge("cpu0", "cpu0", "m0", "m1"),
        edge("cpu0", "ghost", "m0", "s0"),
    ])
    with pytest.raises(StructuralValidationError) as exc_info:
        raise_on_errors(d)

    assert [i.type for i in exc_info.value.issues] == [IssueType.MISSING_NODE]
    assert "[missing_node]" in str(exc_info.value)


def test_raise_on_errors_passes_warnings_through():
    d = diagram([node("cpu0", intf("m0"), intf("m1"))], [edge("cpu0", "cpu0", "m0", "m1")])
    result = raise_on_errors(d)
    assert result.warning_count == 1


def test_get_validation_summary():
    d = diagram([node("x"), node("x", x=400)])
    assert get_validation_summary(d) == "Invalid | Errors: 1, Warnings: 0"


def test_issue_dict_uses_camel_case_and_reloads():
    d = diagram([node("cpu0", intf("m0"), x=0), node("cpu0", intf("m1"), x=300)])
    [issue] = validate_diagram(d).issues
    data = issue.to_dict()

    assert data["type"] == "duplicate_node_id"
    assert data["autoFix"] == "rename"
    assert data["nodeId"] == "cpu0"
    assert data["details"]["duplicateStrategy"] == "different_position"
    assert data["details"]["nodeIndices"] == [0, 1]
    assert "edgeIndex" not in data
    assert ValidationIssue.from_dict(data) == issue


def test_issue_from_dict_rejects_unknown_values():
    with pytest.raises(ValueError):
        ValidationIssue.from_dict({"type": "teleport", "severity": "error"})
    with pytest.raises(ValueError):
        ValidationIssue.from_dict({"type": "self_loop", "severity": "warning", "autoFix": "explode"})


def test_edge_across_copies_of_a_duplicated_id_is_not_a_self_loop():
    d = diagram(
        [node("cpu0", intf("a"), x=0), node("cpu0", intf("b", "slave"), x=300)],
        [edge("cpu0", "cpu0", "a", "b")],
    )
    assert [i.type for i in validate_diagram(d).issues] == [IssueType.DUPLICATE_NODE_ID]
