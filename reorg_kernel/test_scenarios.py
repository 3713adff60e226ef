"""
Hierarchy Kernel v1.0 — Test Scenarios

Executable scenarios over a small two-department directory:
  1. Build: single root, dangling managers, cycles, extra roots, duplicates
  2. Roles: fixed precedence, determinism, unknown ids
  3. Propagation table: join team, sticky leader, member leaves team,
     member target, top-executive target
  4. Moves: same parent / self / descendant are no-ops, apply + restore
  5. Invariants, hit-testing, diagnostics, canonical hash

Run:  python -m reorg_kernel.test_scenarios
"""

from __future__ import annotations

import json
import sys
from typing import List

from reorg_kernel.constants import (
    DEPARTMENT_HEAD,
    REASON_ACCEPTED,
    REASON_CYCLE,
    REASON_NO_TARGET,
    REASON_ROOT_NOT_DRAGGABLE,
    REASON_SAME_PARENT,
    REASON_SELF_DROP,
    TEAM_LEADER,
    TEAM_MEMBER,
    TOP_EXECUTIVE,
)
from reorg_kernel.diagnostics import compute_diagnostics
from reorg_kernel.domain_types import Position
from reorg_kernel.graph import depth_of
from reorg_kernel.hashing import canonical_hash
from reorg_kernel.hierarchy import build_hierarchy
from reorg_kernel.hit_test import DragPointer, NodeBox, find_drop_candidate
from reorg_kernel.invariants import InvariantViolationError, validate_tree
from reorg_kernel.moves import apply_move, check_move, restore
from reorg_kernel.propagation import match_rule
from reorg_kernel.roles import UnknownPositionError, classify_all, classify_role


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def _dump(label: str, data: dict) -> None:
    print(f"\n--- {label} ---")
    print(json.dumps(data, indent=2, ensure_ascii=False))


def sample_directory() -> List[Position]:
    """
    ceo
    ├── dh_eng (ENG head)
    │   ├── lead_a (Alpha) ── m1
    │   └── lead_b (Beta)  ── m2
    └── dh_ops (OPS head)
        ├── lead_g (Gamma) ── m3
        └── solo (Delta)
    """
    def eng(**kw) -> dict:
        return dict(department="Engineering", department_code="ENG", **kw)

    def ops(**kw) -> dict:
        return dict(department="Operations", department_code="OPS", **kw)

    return [
        Position(id="ceo", name="Kim", title="CEO"),
        Position(id="dh_eng", name="Lee", title="VP Engineering", manager_id="ceo",
                 is_department_head=True, **eng()),
        Position(id="lead_a", name="Park", title="Lead", manager_id="dh_eng",
                 **eng(team="Alpha", team_code="A")),
        Position(id="m1", name="Choi", title="Engineer", manager_id="lead_a",
                 **eng(team="Alpha", team_code="A")),
        Position(id="lead_b", name="Jung", title="Lead", manager_id="dh_eng",
                 **eng(team="Beta", team_code="B")),
        Position(id="m2", name="Kang", title="Engineer", manager_id="lead_b",
                 **eng(team="Beta", team_code="B")),
        Position(id="dh_ops", name="Cho", title="VP Operations", manager_id="ceo",
                 is_department_head=True, **ops()),
        Position(id="lead_g", name="Yoon", title="Lead", manager_id="dh_ops",
                 **ops(team="Gamma", team_code="G")),
        Position(id="m3", name="Jang", title="Operator", manager_id="lead_g",
                 **ops(team="Gamma", team_code="G")),
        Position(id="solo", name="Lim", title="Analyst", manager_id="dh_ops",
                 **ops(team="Delta", team_code="D")),
    ]


def _tree():
    return build_hierarchy(sample_directory()).tree


# ───────────────────────────────────────────────────────────────
# Scenario 1: Hierarchy build
# ───────────────────────────────────────────────────────────────

def test_clean_directory_builds_single_root() -> None:
    _header("Scenario 1a -- Clean directory")
    result = build_hierarchy(sample_directory())
    tree = result.tree
    assert result.diagnostics == []
    assert tree.root_id == "ceo"
    assert len(tree) == 10
    assert tree.children_of("dh_eng") == ["lead_a", "lead_b"]
    validate_tree(tree)
    print("  [PASS] single root 'ceo', 10 nodes, no corrections")


def test_build_does_not_mutate_input() -> None:
    positions = sample_directory()
    tree = build_hierarchy(positions).tree
    tree.positions["m1"].team = "Changed"
    assert positions[3].team == "Alpha"

    clone = tree.copy()
    clone.set_parent("m1", "lead_b")
    clone.positions["m1"].team = "Beta"
    assert tree.parent_of("m1") == "lead_a"
    assert tree.positions["m1"].team == "Changed"
    assert clone.children_of("lead_b") == ["m1", "m2"]
    print("  [PASS] builder and tree.copy() work on copies")


def test_dangling_manager_reparented_under_main_root() -> None:
    _header("Scenario 1b -- Dangling manager")
    positions = sample_directory() + [
        Position(id="ghost_report", title="Contractor", manager_id="nobody"),
    ]
    result = build_hierarchy(positions)
    kinds = [(d.kind, d.node_id) for d in result.diagnostics]
    assert ("dangling_manager", "ghost_report") in kinds
    assert ("extra_root", "ghost_report") in kinds
    assert result.tree.parent_of("ghost_report") == "ceo"
    validate_tree(result.tree)
    print(f"  [PASS] corrections: {kinds}")


def test_cycle_broken_at_originating_node() -> None:
    _header("Scenario 1c -- Manager cycle")
    positions = [
        Position(id="ceo", title="CEO"),
        Position(id="a", manager_id="c"),
        Position(id="b", manager_id="a"),
        Position(id="c", manager_id="b"),
    ]
    result = build_hierarchy(positions)
    tree = result.tree
    kinds = [(d.kind, d.node_id) for d in result.diagnostics]
    # The walk from "a" closes the loop first; "a" loses its manager and
    # then becomes an extra root under the CEO.
    assert kinds == [("cycle_broken", "a"), ("extra_root", "a")]
    assert tree.root_id == "ceo"
    assert tree.parent_of("a") == "ceo"
    assert tree.parent_of("b") == "a"
    assert tree.parent_of("c") == "b"
    assert depth_of(tree, "c") == 3
    validate_tree(tree)
    print("  [PASS] 3-cycle broken at 'a', tree valid")


def test_chain_into_cycle_keeps_its_manager() -> None:
    """a reports into the b <-> c loop but is not part of it."""
    def positions():
        return {
            "ceo": Position(id="ceo", title="CEO"),
            "a": Position(id="a", manager_id="b"),
            "b": Position(id="b", manager_id="c"),
            "c": Position(id="c", manager_id="b"),
        }

    for order in (["ceo", "a", "b", "c"], ["ceo", "b", "c", "a"]):
        by_id = positions()
        result = build_hierarchy([by_id[nid] for nid in order])
        tree = result.tree
        kinds = [(d.kind, d.node_id) for d in result.diagnostics]
        assert kinds == [("cycle_broken", "b"), ("extra_root", "b")], (order, kinds)
        assert tree.parent_of("a") == "b"
        assert tree.parent_of("b") == "ceo"
        assert tree.parent_of("c") == "b"
        validate_tree(tree)
    print("  [PASS] only cycle members lose their manager, in either input order")


def test_pure_cycle_yields_one_root() -> None:
    result = build_hierarchy([
        Position(id="x", manager_id="y"),
        Position(id="y", manager_id="x"),
    ])
    assert result.tree.root_id == "x"
    assert result.tree.parent_of("y") == "x"
    validate_tree(result.tree)
    print("  [PASS] two-node cycle resolved to root 'x'")


def test_main_root_prefers_top_executive_title() -> None:
    _header("Scenario 1d -- Root resolution priority")
    result = build_hierarchy([
        Position(id="eng", title="Engineer"),
        Position(id="head", title="Director", is_department_head=True),
        Position(id="boss", title="  Chief Executive Officer "),
    ])
    assert result.tree.root_id == "boss"
    assert result.tree.parent_of("eng") == "boss"
    assert result.tree.parent_of("head") == "boss"

    by_flag = build_hierarchy([
        Position(id="eng", title="Engineer"),
        Position(id="head", title="Director", is_department_head=True),
    ])
    assert by_flag.tree.root_id == "head"

    by_order = build_hierarchy([Position(id="p1"), Position(id="p2")])
    assert by_order.tree.root_id == "p1"

    korean = build_hierarchy(
        [Position(id="p1"), Position(id="p2", title="대표이사")],
    )
    assert korean.tree.root_id == "p2"

    custom = build_hierarchy(
        [Position(id="p1", title="CEO"), Position(id="p2", title="Founder")],
        top_executive_titles=("founder",),
    )
    assert custom.tree.root_id == "p2"
    print("  [PASS] title > department-head flag > input order")


def test_duplicate_ids_keep_first() -> None:
    result = build_hierarchy([
        Position(id="ceo", title="CEO"),
        Position(id="p", name="first", manager_id="ceo"),
        Position(id="p", name="second", manager_id="ceo"),
    ])
    assert len(result.tree) == 2
    assert result.tree.positions["p"].name == "first"
    assert [d.kind for d in result.diagnostics] == ["duplicate_id"]
    print("  [PASS] duplicate id reported, first occurrence kept")


def test_empty_directory() -> None:
    result = build_hierarchy([])
    assert len(result.tree) == 0
    assert result.tree.root_id is None
    validate_tree(result.tree)
    print("  [PASS] empty directory is a valid empty tree")


# ───────────────────────────────────────────────────────────────
# Scenario 2: Roles
# ───────────────────────────────────────────────────────────────

def test_role_precedence() -> None:
    _header("Scenario 2 -- Role classification")
    tree = _tree()
    roles = classify_all(tree)
    _dump("Roles", roles)
    assert roles["ceo"] == TOP_EXECUTIVE
    assert roles["dh_eng"] == DEPARTMENT_HEAD
    assert roles["lead_a"] == TEAM_LEADER
    assert roles["m1"] == TEAM_MEMBER
    assert roles["solo"] == TEAM_MEMBER

    # A department head with no reports is still a department head.
    tree.set_parent("lead_g", "dh_eng")
    tree.set_parent("solo", "dh_eng")
    assert classify_role(tree, "dh_ops") == DEPARTMENT_HEAD
    print("  [PASS] fixed precedence honoured")


def test_role_is_deterministic() -> None:
    first = classify_all(_tree())
    second = classify_all(_tree())
    assert first == second
    print("  [PASS] same tree -> same roles")


def test_unknown_role_query_raises() -> None:
    tree = _tree()
    try:
        classify_role(tree, "nobody")
    except UnknownPositionError as exc:
        assert exc.node_id == "nobody"
        print(f"  [PASS] {exc}")
        return
    raise AssertionError("Expected UnknownPositionError")


# ───────────────────────────────────────────────────────────────
# Scenario 3: Propagation table
# ───────────────────────────────────────────────────────────────

def test_member_joins_leader_team() -> None:
    _header("Scenario 3a -- Member joins another team")
    tree = _tree()
    apply_move(tree, "m1", "lead_b")
    moved = tree.positions["m1"]
    assert tree.parent_of("m1") == "lead_b"
    assert (moved.team, moved.team_code) == ("Beta", "B")
    assert moved.department_code == "ENG"
    # lead_a lost its only report
    assert classify_role(tree, "lead_a") == TEAM_MEMBER
    print("  [PASS] Alpha -> Beta")


def test_team_leader_keeps_team_under_department_head() -> None:
    _header("Scenario 3b -- Sticky team leader")
    tree = _tree()
    assert match_rule(TEAM_LEADER, DEPARTMENT_HEAD).name == "leader_keeps_team"
    apply_move(tree, "lead_g", "dh_eng")
    moved = tree.positions["lead_g"]
    assert (moved.team, moved.team_code) == ("Gamma", "G")
    assert (moved.department, moved.department_code) == ("Engineering", "ENG")
    # Reports travel with the leader; their attributes are not touched.
    assert tree.positions["m3"].team == "Gamma"
    assert tree.positions["m3"].department_code == "OPS"
    print("  [PASS] Gamma kept, department inherited")


def test_member_under_department_head_loses_team() -> None:
    _header("Scenario 3c -- Member reports to department head")
    tree = _tree()
    apply_move(tree, "m2", "dh_ops")
    moved = tree.positions["m2"]
    assert moved.team is None and moved.team_code is None
    assert moved.department_code == "OPS"
    print("  [PASS] team cleared, department inherited")


def test_member_target_becomes_leader() -> None:
    tree = _tree()
    apply_move(tree, "m1", "solo")
    moved = tree.positions["m1"]
    assert (moved.team, moved.department_code) == ("Delta", "OPS")
    assert classify_role(tree, "solo") == TEAM_LEADER
    print("  [PASS] moving under a member inherits that member's team")


def test_top_executive_target_keeps_attributes() -> None:
    tree = _tree()
    before = tree.positions["lead_a"].to_dict()
    apply_move(tree, "lead_a", "ceo")
    after = tree.positions["lead_a"].to_dict()
    before.pop("manager_id")
    after.pop("manager_id")
    assert before == after
    assert tree.parent_of("lead_a") == "ceo"
    print("  [PASS] no rule for top-executive target: attributes unchanged")


# ───────────────────────────────────────────────────────────────
# Scenario 4: Move checks + restore
# ───────────────────────────────────────────────────────────────

def test_move_rejections() -> None:
    _header("Scenario 4 -- Move rejections")
    tree = _tree()
    snapshot = canonical_hash(tree)
    assert check_move(tree, "m1", "lead_a") == REASON_SAME_PARENT
    assert check_move(tree, "m1", "m1") == REASON_SELF_DROP
    assert check_move(tree, "m1", None) == REASON_NO_TARGET
    assert check_move(tree, "ceo", "m1") == REASON_ROOT_NOT_DRAGGABLE
    assert check_move(tree, "dh_eng", "m1") == REASON_CYCLE
    assert check_move(tree, "dh_eng", "lead_a") == REASON_CYCLE
    assert check_move(tree, "m1", "lead_b") == REASON_ACCEPTED
    try:
        apply_move(tree, "m1", "lead_a")
    except ValueError:
        pass
    else:
        raise AssertionError("Expected ValueError for same-parent move")
    assert canonical_hash(tree) == snapshot
    print("  [PASS] rejected moves leave the tree untouched")


def test_restore_inverts_move() -> None:
    tree = _tree()
    original = canonical_hash(tree)
    inverse = apply_move(tree, "lead_g", "lead_a")
    moved = canonical_hash(tree)
    assert moved != original
    assert tree.parent_of("lead_g") == "lead_a"
    assert tree.children_of("lead_a") == ["m1", "lead_g"]

    redo_action = restore(tree, inverse)
    assert canonical_hash(tree) == original
    assert restore(tree, redo_action) is not None
    assert canonical_hash(tree) == moved
    print("  [PASS] restore(apply(x)) == x and back again")


def test_restore_skips_vanished_parent() -> None:
    tree = _tree()
    inverse = apply_move(tree, "m1", "lead_b")
    del tree.positions["lead_a"]
    del tree.parent_ids["lead_a"]
    before = canonical_hash(tree)
    assert restore(tree, inverse) is None
    assert canonical_hash(tree) == before
    print("  [PASS] restore to a missing parent is a no-op")


# ───────────────────────────────────────────────────────────────
# Scenario 5: Invariants, hit-test, diagnostics, hash
# ───────────────────────────────────────────────────────────────

def test_invariant_violations() -> None:
    _header("Scenario 5 -- Invariants")
    cases = {
        "parent_refs": lambda t: t.set_parent("m1", "nobody"),
        "single_root": lambda t: t.set_parent("dh_ops", ""),
        "no_cycles": lambda t: t.set_parent("dh_eng", "m1"),
    }
    for rule, corrupt in cases.items():
        tree = _tree()
        corrupt(tree)
        try:
            validate_tree(tree)
        except InvariantViolationError as exc:
            assert exc.rule == rule, (exc.rule, rule)
            print(f"  [PASS] {exc}")
            continue
        raise AssertionError(f"Expected InvariantViolationError({rule})")


def test_hit_test_uses_card_midpoint() -> None:
    layout = {
        "a": NodeBox(0, 0, 100, 50),
        "b": NodeBox(200, 0, 100, 50),
        "c": NodeBox(200, 0, 100, 50),
    }
    # Card at (160, 0) sized 100x50 -> midpoint (210, 25) inside b and c
    assert find_drop_candidate(layout, "a", DragPointer(160, 0, 100, 50)) == "b"
    assert find_drop_candidate(layout, "b", DragPointer(160, 0, 100, 50)) == "c"
    # Edges are inclusive
    assert find_drop_candidate(layout, "x", DragPointer(100, 50)) == "a"
    assert find_drop_candidate(layout, "x", DragPointer(150, 25)) is None
    # The dragged node never hits itself
    assert find_drop_candidate({"a": NodeBox(0, 0, 10, 10)}, "a", DragPointer(5, 5)) is None
    # Stale layout entries are skipped when the known ids are given
    assert find_drop_candidate(layout, "a", DragPointer(160, 0, 100, 50), {"a", "c"}) == "c"
    assert find_drop_candidate(layout, "a", DragPointer(160, 0, 100, 50), set()) is None
    print("  [PASS] midpoint hit-test, first match in layout order")


def test_diagnostics_summary() -> None:
    tree = _tree()
    diag = compute_diagnostics(tree)
    _dump("Diagnostics", diag)
    assert diag["node_count"] == 10
    assert diag["root_id"] == "ceo"
    assert diag["max_depth"] == 3
    assert diag["role_counts"] == {
        TOP_EXECUTIVE: 1, DEPARTMENT_HEAD: 2, TEAM_LEADER: 3, TEAM_MEMBER: 4,
    }
    assert diag["warnings"] == []

    apply_move(tree, "m2", "dh_ops")
    apply_move(tree, "m2", "lead_a")
    apply_move(tree, "lead_b", "ceo")
    tree.positions["m1"].team = None
    warnings = compute_diagnostics(tree)["warnings"]
    assert any("without a team" in w and "m1" in w for w in warnings)
    print("  [PASS] counts, depth and warnings")


def test_canonical_hash_stability() -> None:
    h1 = canonical_hash(_tree())
    h2 = canonical_hash(build_hierarchy(list(reversed(sample_directory()))).tree)
    assert h1 == h2, "hash must not depend on input order"
    tree = _tree()
    tree.positions["m1"].team = "Omega"
    assert canonical_hash(tree) != h1
    print(f"  [PASS] hash {h1[:16]}... order-independent, attribute-sensitive")


# ───────────────────────────────────────────────────────────────

ALL_TESTS = [
    test_clean_directory_builds_single_root,
    test_build_does_not_mutate_input,
    test_dangling_manager_reparented_under_main_root,
    test_cycle_broken_at_originating_node,
    test_chain_into_cycle_keeps_its_manager,
    test_pure_cycle_yields_one_root,
    test_main_root_prefers_top_executive_title,
    test_duplicate_ids_keep_first,
    test_empty_directory,
    test_role_precedence,
    test_role_is_deterministic,
    test_unknown_role_query_raises,
    test_member_joins_leader_team,
    test_team_leader_keeps_team_under_department_head,
    test_member_under_department_head_loses_team,
    test_member_target_becomes_leader,
    test_top_executive_target_keeps_attributes,
    test_move_rejections,
    test_restore_inverts_move,
    test_restore_skips_vanished_parent,
    test_invariant_violations,
    test_hit_test_uses_card_midpoint,
    test_diagnostics_summary,
    test_canonical_hash_stability,
]


def main() -> None:
    results = []
    for fn in ALL_TESTS:
        try:
            fn()
            results.append(True)
        except Exception as e:
            print(f"\n[ERROR] {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            results.append(False)

    print(f"\n{'='*60}")
    print(f"  RESULTS: {sum(results)}/{len(results)} scenarios passed")
    print(f"{'='*60}")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
