"""Reconciler: applying validator issues as a pure diagram rewrite"""

from collections import Counter

import pytest

from socdrc.ir.diagram import Diagram
from socdrc.validation.diagram_fixer import (
    OFFSET_STEP,
    DiagramAutoFixer,
    apply_auto_fixes,
    auto_fix_diagram,
    validate_and_fix_diagram,
)
from socdrc.validation.diagram_validator import validate_diagram


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


def reconcile(d):
    return apply_auto_fixes(d, validate_diagram(d).issues)


def messy_diagram():
    return diagram(
        [
            node("cpu0", intf("m0"), x=0, y=0),
            node("cpu0", intf("m1"), x=300, y=0),
            node("mem0", intf("s0", "slave"), x=100, y=100, category="Memory"),
            node("mem0", intf("s0", "slave"), x=100, y=100, category="Memory"),
            node("periph0", intf("s0", "slave"), x=200, y=200, category="IO", type="UART"),
            node("periph0", intf("s0", "slave"), x=200, y=200, category="IO", type="SPI"),
            node("dma0", intf("m0"), intf("s0", "slave"), x=400, y=0, category="Accelerator"),
        ],
        [
            edge("cpu0", "mem0", "m0", "s0"),
            edge("cpu0", "periph0", "m1", "s0"),
            edge("mem0", "cpu0", "s0", "m0"),
            edge("cpu0", "ghost", "m0", "x"),
            edge("cpu0", "mem0", "m9", "s0"),
            edge("mem0", "dma0", "s0", "m0"),
            edge("dma0", "dma0", "m0", "s0"),
        ],
    )


def test_rename_duplicates_at_different_positions():
    d = diagram(
        [
            node("cpu0", intf("m0"), x=0, y=0),
            node("cpu0", intf("m1"), x=300, y=0),
            node("mem0", intf("s0", "slave"), intf("s1", "slave")),
        ],
        [edge("cpu0", "mem0", "m0", "s0"), edge("cpu0", "mem0", "m1", "s1")],
    )
    fixed = reconcile(d)

    assert [n.id for n in fixed.nodes] == ["cpu0", "cpu0-1", "mem0"]
    assert (fixed.nodes[1].position.x, fixed.nodes[1].position.y) == (300, 0)
    assert [e.source for e in fixed.edges] == ["cpu0", "cpu0-1"]


def test_exact_duplicate_is_removed():
    d = diagram(
        [
            node("mem0", intf("s0", "slave"), x=100, y=100),
            node("mem0", intf("s0", "slave"), x=100, y=100),
            node("cpu0", intf("m0")),
        ],
        [edge("cpu0", "mem0", "m0", "s0")],
    )
    fixed = reconcile(d)

    assert [n.id for n in fixed.nodes] == ["mem0", "cpu0"]
    assert fixed.edges == d.edges


def test_same_position_duplicate_is_renamed_and_moved():
    d = diagram([
        node("periph0", intf("s0", "slave"), x=200, y=200, type="UART"),
        node("periph0", intf("s0", "slave"), x=200, y=200, type="SPI"),
    ])
    fixed = reconcile(d)

    moved = fixed.nodes[1]
    assert moved.id == "periph0-1"
    assert (moved.position.x, moved.position.y) == (200 + OFFSET_STEP, 200 + OFFSET_STEP) == (250, 250)
    assert (fixed.nodes[0].position.x, fixed.nodes[0].position.y) == (200, 200)


def test_offset_grows_with_each_copy():
    d = diagram([node("n", x=0, y=0, type=t) for t in ("a", "b", "c")])
    fixed = reconcile(d)
    assert [(n.id, n.position.x) for n in fixed.nodes] == [("n", 0), ("n-1", 50), ("n-2", 100)]


def test_rename_skips_ids_already_taken():
    d = diagram([node("A", x=0), node("A", x=300), node("A-1", x=600)])
    fixed = reconcile(d)
    assert [n.id for n in fixed.nodes] == ["A", "A-2", "A-1"]


def test_edge_whose_interface_only_existed_on_a_removed_copy_is_dropped():
    d = diagram(
        [
            node("mem0", intf("s0", "slave")),
            node("mem0", intf("s1", "slave")),
            node("cpu0", intf("m0")),
        ],
        [edge("cpu0", "mem0", "m0", "s1")],
    )
    fixed = reconcile(d)

    assert [n.id for n in fixed.nodes] == ["mem0", "cpu0"]
    assert fixed.edges == []
    assert validate_diagram(fixed).issues == []


def test_reversed_edge_is_flipped_with_its_id():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [edge("mem0", "cpu0", "s0", "m0")],
    )
    [flipped] = reconcile(d).edges
    assert (flipped.source, flipped.source_handle, flipped.target, flipped.target_handle) == (
        "cpu0", "m0", "mem0", "s0",
    )
    assert flipped.id == "cpu0m0-mem0s0"


def test_messy_diagram_is_fully_reconciled():
    fixed = reconcile(messy_diagram())

    assert [n.id for n in fixed.nodes] == ["cpu0", "cpu0-1", "mem0", "periph0", "periph0-1", "dma0"]
    assert [(e.source, e.target) for e in fixed.edges] == [
        ("cpu0", "mem0"),
        ("cpu0-1", "periph0"),
        ("dma0", "mem0"),
    ]


def test_reconciled_diagram_has_unique_ids_and_resolvable_edges():
    fixed = reconcile(messy_diagram())

    assert all(count == 1 for count in Counter(n.id for n in fixed.nodes).values())
    for e in fixed.edges:
        assert fixed.find_node(e.source) is not None
        assert fixed.find_node(e.target) is not None
        if e.source_handle:
            assert fixed.find_node(e.source).has_interface(e.source_handle)
        if e.target_handle:
            assert fixed.find_node(e.target).has_interface(e.target_handle)


def test_reconcile_is_idempotent():
    fixed = reconcile(messy_diagram())
    result = validate_diagram(fixed)

    assert result.error_count == 0
    assert result.issues == []
    assert reconcile(fixed) == fixed


def test_reconcile_does_not_modify_its_input():
    d = messy_diagram()
    before = d.to_dict()
    reconcile(d)
    assert d.to_dict() == before


def test_no_issues_returns_the_same_diagram():
    d = diagram([node("cpu0", intf("m0"))])
    assert apply_auto_fixes(d, []) is d


def test_issues_from_another_diagram_are_rejected():
    issues = validate_diagram(messy_diagram()).issues
    other = diagram([node("cpu0", intf("m0"))], [edge("cpu0", "cpu0", "m0", "m0")])
    with pytest.raises(ValueError):
        apply_auto_fixes(other, issues)


def test_stale_edge_id_is_rejected():
    d = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [edge("mem0", "cpu0", "s0", "m0", id="e1")],
    )
    issues = validate_diagram(d).issues
    renamed = diagram(
        [node("cpu0", intf("m0")), node("mem0", intf("s0", "slave"))],
        [edge("mem0", "cpu0", "s0", "m0", id="e2")],
    )
    with pytest.raises(ValueError, match="stale"):
        apply_auto_fixes(renamed, issues)


def test_auto_fixer_reports_changes():
    fixed, result = DiagramAutoFixer().fix(messy_diagram())

    assert result.success
    assert result.fix_type == "auto"
    assert result.issues_remaining == []
    assert "duplicate_node_id" in result.issues_fixed
    assert "missing_node" in result.issues_fixed
    assert any("cpu0-1" in change for change in result.changes_made)
    assert result.to_dict()["fixType"] == "auto"
    assert len(fixed.nodes) == 6


def test_auto_fix_diagram_on_clean_diagram_changes_nothing():
    d = diagram([node("cpu0", intf("m0"))])
    fixed, result = auto_fix_diagram(d)
    assert fixed is d
    assert result.success
    assert result.fix_type == "none"
    assert result.changes_made == []


def test_validate_and_fix_without_issues():
    d = diagram([node("cpu0", intf("m0"))])
    fixed, validation, result = validate_and_fix_diagram(d)
    assert fixed is d
    assert validation.is_valid
    assert result.changes_made == ["No fixes needed"]


def test_validate_and_fix_returns_final_validation():
    fixed, validation, result = validate_and_fix_diagram(messy_diagram())
    assert validation.is_valid
    assert validation.issues == []
    assert result.success


def test_edge_between_two_copies_of_a_duplicated_id_survives_the_rename():
    d = diagram(
        [node("cpu0", intf("m0"), x=0, y=0), node("cpu0", intf("s1", "slave"), x=300, y=0)],
        [edge("cpu0", "cpu0", "m0", "s1")],
    )
    fixed = reconcile(d)

    [kept] = fixed.edges
    assert (kept.source, kept.target) == ("cpu0", "cpu0-1")
    assert validate_diagram(fixed).issues == []
