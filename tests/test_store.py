"""
TaskDeps — Dependency Store Tests
===================================
Validates:
- Edge identity and merge-on-re-add
- Forward / reverse adjacency stay in step
- Batch validation is atomic
- replace / remove semantics and traversal helpers
"""

from __future__ import annotations

import pytest

from taskdeps.core.exceptions import ValidationError
from taskdeps.graph import DependencyKind, DependencyStore, EdgeSpec, edge_id


def _assert_adjacency_consistent(store: DependencyStore) -> None:
    with store.read_locked():
        for task in store.tasks():
            for target in store.get_targets(task):
                assert task in store.get_dependents(target)
            for dependent in store.get_dependents(task):
                assert store.has_edge(dependent, task)


# ── Insert & merge ──────────────────────────────────────────────────────


class TestAddEdges:
    """Upsert behaviour of add_edges."""

    def test_adds_edges_with_defaults(self, store):
        changes = store.add_edges("task_1", [EdgeSpec("task_2"), EdgeSpec("task_3")])

        assert [e.id for e in changes.added] == ["task_1->task_2", "task_1->task_3"]
        assert changes.updated == ()
        edge = store.get_edge("task_1", "task_2")
        assert edge.kind is DependencyKind.DEPENDS_ON
        assert edge.strength == 1.0
        assert store.get_dependents("task_2") == frozenset({"task_1"})

    def test_readd_merges_instead_of_duplicating(self, store):
        first = store.add_edges("task_1", [EdgeSpec("task_2", metadata={"note": "a"})])
        created_at = first.added[0].created_at

        changes = store.add_edges(
            "task_1", [EdgeSpec("task_2", kind="blocks", strength=0.4, metadata={"owner": "x"})]
        )

        assert changes.added == ()
        assert len(changes.updated) == 1
        assert store.edge_count() == 1
        edge = store.get_edge("task_1", "task_2")
        assert edge.kind is DependencyKind.BLOCKS
        assert edge.strength == 0.4
        assert dict(edge.metadata) == {"note": "a", "owner": "x"}
        assert edge.created_at == created_at
        assert edge.updated_at >= created_at

    def test_merge_keeps_stored_values_for_omitted_fields(self, store):
        store.add_edges("task_1", [EdgeSpec("task_2", kind="prerequisite", strength=0.2)])
        store.add_edges("task_1", [EdgeSpec("task_2")])

        edge = store.get_edge("task_1", "task_2")
        assert edge.kind is DependencyKind.PREREQUISITE
        assert edge.strength == 0.2

    def test_duplicate_targets_in_one_batch_collapse(self, store):
        changes = store.add_edges(
            "task_1", [EdgeSpec("task_2", strength=0.1), EdgeSpec("task_2", strength=0.9)]
        )

        assert len(changes.added) == 1
        assert store.get_edge("task_1", "task_2").strength == 0.9

    def test_self_loop_is_stored(self, store):
        store.add_edges("task_1", [EdgeSpec("task_1")])
        assert store.get_edge("task_1", "task_1").is_self_loop
        assert store.get_dependents("task_1") == frozenset({"task_1"})

    def test_edge_spec_from_dict_accepts_aliases(self):
        spec = EdgeSpec.from_dict({"taskId": "task_9", "type": "blocks", "owner": "ops"})
        assert spec.target == "task_9"
        assert spec.kind == "blocks"
        assert dict(spec.metadata) == {"owner": "ops"}


# ── Validation ──────────────────────────────────────────────────────────


class TestValidation:
    """Malformed input is rejected before anything is applied."""

    @pytest.mark.parametrize("task_id", ["", "   ", None, 7])
    def test_rejects_bad_source_id(self, store, task_id):
        with pytest.raises(ValidationError):
            store.add_edges(task_id, [EdgeSpec("task_2")])

    def test_rejects_empty_target(self, store):
        with pytest.raises(ValidationError):
            store.add_edges("task_1", [EdgeSpec("")])

    def test_rejects_unknown_kind(self, store):
        with pytest.raises(ValidationError, match="Unknown dependency kind"):
            store.add_edges("task_1", [EdgeSpec("task_2", kind="sometimes")])

    @pytest.mark.parametrize("strength", [-0.1, 1.5, float("nan"), "high", True])
    def test_rejects_strength_outside_unit_interval(self, store, strength):
        with pytest.raises(ValidationError):
            store.add_edges("task_1", [EdgeSpec("task_2", strength=strength)])

    def test_invalid_spec_rejects_whole_batch(self, store):
        store.add_edges("task_1", [EdgeSpec("task_2")])

        with pytest.raises(ValidationError):
            store.add_edges(
                "task_1",
                [EdgeSpec("task_3"), EdgeSpec("task_4", strength=2.0), EdgeSpec("task_5")],
            )

        assert store.get_targets("task_1") == ["task_2"]
        assert store.get_dependents("task_3") == frozenset()


# ── Replace & remove ────────────────────────────────────────────────────


class TestReplaceAndRemove:

    def test_replace_reports_added_updated_removed(self, store):
        store.add_edges("task_1", [EdgeSpec("task_2"), EdgeSpec("task_3")])

        changes = store.replace_edges(
            "task_1", [EdgeSpec("task_3", strength=0.5), EdgeSpec("task_4")]
        )

        assert [e.to_task for e in changes.added] == ["task_4"]
        assert [e.to_task for e in changes.updated] == ["task_3"]
        assert [e.to_task for e in changes.removed] == ["task_2"]
        assert store.get_targets("task_1") == ["task_3", "task_4"]
        assert store.get_dependents("task_2") == frozenset()
        _assert_adjacency_consistent(store)

    def test_replace_with_same_payload_reports_no_update(self, store):
        store.add_edges("task_1", [EdgeSpec("task_2", strength=0.5)])
        changes = store.replace_edges("task_1", [EdgeSpec("task_2", strength=0.5)])
        assert changes.is_empty

    def test_remove_by_edge_id_and_target_id(self, example_store):
        changes = example_store.remove_edges(
            "task_1", [edge_id("task_1", "task_2"), "task_3", "task_9", "task_1->task_9"]
        )

        assert sorted(e.id for e in changes.removed) == ["task_1->task_2", "task_1->task_3"]
        assert example_store.get_targets("task_1") == []
        assert example_store.get_dependents("task_2") == frozenset()
        _assert_adjacency_consistent(example_store)

    def test_remove_task_drops_both_directions(self, example_store):
        changes = example_store.remove_task("task_4")

        assert len(changes.removed) == 3
        assert example_store.get_dependents("task_5") == frozenset()
        assert "task_4" not in example_store.get_targets("task_2")
        _assert_adjacency_consistent(example_store)

    def test_clear(self, example_store):
        example_store.clear()
        assert example_store.edge_count() == 0
        assert example_store.tasks() == []


# ── Reads & traversals ──────────────────────────────────────────────────


class TestReads:

    def test_reads_return_copies(self, example_store):
        targets = example_store.get_targets("task_1")
        targets.append("task_99")
        assert example_store.get_targets("task_1") == ["task_2", "task_3"]

    def test_tasks_in_first_seen_order(self, example_store):
        assert example_store.tasks() == ["task_1", "task_2", "task_3", "task_4", "task_5"]

    def test_dependency_chain_depths(self, example_store):
        chain = example_store.dependency_chain("task_1")
        depths = {(e.id, d) for e, d in chain}
        assert ("task_1->task_2", 1) in depths
        assert ("task_2->task_4", 2) in depths
        assert ("task_4->task_5", 3) in depths

    def test_dependency_chain_respects_max_depth(self, example_store):
        chain = example_store.dependency_chain("task_1", max_depth=1)
        assert {d for _e, d in chain} == {1}

    def test_shortest_and_all_paths(self, example_store):
        assert example_store.find_shortest_path("task_1", "task_5") == [
            "task_1", "task_2", "task_4", "task_5",
        ]
        assert example_store.find_all_paths("task_1", "task_5") == [
            ["task_1", "task_2", "task_4", "task_5"],
            ["task_1", "task_3", "task_4", "task_5"],
        ]
        assert example_store.find_shortest_path("task_5", "task_1") is None

    def test_statistics(self, store):
        store.add_edges("task_1", [
            EdgeSpec("task_2", strength=0.2),
            EdgeSpec("task_3", kind="blocks", strength=0.6),
        ])
        store.add_edges("task_2", [EdgeSpec("task_3")])

        stats = store.statistics()

        assert stats["total_tasks"] == 2
        assert stats["total_dependencies"] == 3
        assert stats["average_dependencies_per_task"] == 1.5
        assert stats["dependency_kinds"] == {"depends_on": 2, "blocks": 1}
        assert stats["strength_distribution"] == {"low": 1, "medium": 1, "high": 1}
