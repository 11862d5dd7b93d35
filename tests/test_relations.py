"""Tests for the relation table and planning helpers."""

import pytest

from pkm_data.collections import COLLECTION_SPECS
from pkm_data.models import AsymmetricLink, InboundCleanupSpec, RelationConfig, RelationPair
from pkm_data.relations import (
    RELATION_CONFIG,
    RELATION_PAIRS,
    _build_relation_config,
    find_asymmetric_links,
    normalize_relations,
    plan_bidirectional_mutations,
    plan_detach_mutations,
    plan_inbound_cleanup_specs,
    read_relation_ids,
    unique_ids,
)


def test_every_relation_has_its_mirror() -> None:
    """Test that each declared relation is declared in the opposite direction too."""
    for pair in RELATION_PAIRS:
        mirror = RELATION_CONFIG[pair.target_collection][pair.target_field]
        assert mirror == RelationConfig(target_collection=pair.source_collection, target_field=pair.source_field)


def test_relation_config_matches_collection_defaults() -> None:
    """Test that the relation table and collection defaults agree."""
    for name, spec in COLLECTION_SPECS.items():
        assert set(RELATION_CONFIG[name]) == set(spec.relation_fields)


def test_duplicate_relation_rejected() -> None:
    """Test that a relation cannot be declared twice."""
    pairs = [
        RelationPair("tasks", "personIds", "people", "taskIds"),
        RelationPair("tasks", "personIds", "people", "taskIds"),
    ]
    with pytest.raises(ValueError, match="tasks.personIds"):
        _build_relation_config(pairs)


def test_unique_ids() -> None:
    """Test deduplication keeps first-seen order and drops empty values."""
    assert unique_ids(["b", "a", "b", "", None, "c", "a"]) == ["b", "a", "c"]
    assert unique_ids([]) == []


def test_read_relation_ids() -> None:
    """Test tolerant reads of relation arrays."""
    assert read_relation_ids(None, "personIds") == []
    assert read_relation_ids({"personIds": "person_1"}, "personIds") == []
    assert read_relation_ids({}, "personIds") == []
    assert read_relation_ids({"personIds": ["person_1"]}, "personIds") == ["person_1"]


def test_normalize_relations_is_idempotent() -> None:
    """Test that normalizing twice equals normalizing once."""
    entity = {"id": "task_1", "personIds": ["a", "a", "b"], "noteIds": None, "title": "x"}
    fields = COLLECTION_SPECS["tasks"].relation_fields

    once = normalize_relations(entity, fields)

    assert once["personIds"] == ["a", "b"]
    assert once["noteIds"] == []
    assert once["meetingIds"] == []
    assert normalize_relations(once, fields) == once
    assert entity["personIds"] == ["a", "a", "b"]


def test_plan_for_create() -> None:
    """Test that a create adds one reverse link per related ID."""
    entity = {"id": "project_1", "personIds": ["person_1", "person_2"], "noteIds": ["note_1"]}

    additions, removals = plan_bidirectional_mutations(
        "projects", COLLECTION_SPECS["projects"].relation_fields, entity, None
    )

    assert removals == []
    assert [(m.config.target_collection, m.related_id) for m in additions] == [
        ("people", "person_1"),
        ("people", "person_2"),
        ("notes", "note_1"),
    ]
    assert all(m.source_id == "project_1" for m in additions)
    assert additions[0].config.target_field == "projectIds"


def test_plan_for_update() -> None:
    """Test that an update diffs each field."""
    previous = {"id": "task_1", "personIds": ["a", "b"], "meetingIds": ["m"]}
    current = {"id": "task_1", "personIds": ["b", "c", "c"], "meetingIds": ["m"]}

    additions, removals = plan_bidirectional_mutations(
        "tasks", COLLECTION_SPECS["tasks"].relation_fields, current, previous
    )

    assert [m.related_id for m in additions] == ["c"]
    assert [m.related_id for m in removals] == ["a"]


def test_plan_skips_unknown_fields() -> None:
    """Test that fields outside the relation table produce no mutations."""
    additions, removals = plan_bidirectional_mutations("tasks", ["tags"], {"id": "task_1", "tags": ["x"]}, None)
    assert additions == [] and removals == []


def test_plan_reflexive_relation() -> None:
    """Test that related notes mirror into the same field."""
    entity = {"id": "n1", "relatedNoteIds": ["n2"]}
    additions, _ = plan_bidirectional_mutations("notes", ["relatedNoteIds"], entity, None)

    assert additions[0].config == RelationConfig(target_collection="notes", target_field="relatedNoteIds")


def test_plan_detach() -> None:
    """Test detach removes the deleted entity from each related entity."""
    deleted = {"id": "person_1", "companyIds": ["c1", "c1"], "taskIds": ["t1"]}

    removals = plan_detach_mutations("people", COLLECTION_SPECS["people"].relation_fields, deleted)

    assert [(m.config.target_collection, m.config.target_field, m.related_id) for m in removals] == [
        ("companies", "personIds", "c1"),
        ("tasks", "personIds", "t1"),
    ]


def test_plan_inbound_cleanup_specs() -> None:
    """Test that cleanup covers every field that can point at a collection."""
    specs = plan_inbound_cleanup_specs("notes")

    assert InboundCleanupSpec(source_collection="notes", source_field="relatedNoteIds") in specs
    assert {spec.source_collection for spec in specs} == {
        "projects",
        "notes",
        "tasks",
        "meetings",
        "companies",
        "people",
    }
    assert len(plan_inbound_cleanup_specs("people")) == 5


def test_find_asymmetric_links() -> None:
    """Test detection of one-sided links."""
    snapshot = {
        "projects": [{"id": "project_1", "personIds": ["person_1", "person_2", "person_gone"]}],
        "people": [
            {"id": "person_1", "projectIds": ["project_1"]},
            {"id": "person_2", "projectIds": []},
        ],
    }

    broken = find_asymmetric_links(snapshot)

    assert broken == [
        AsymmetricLink("projects", "project_1", "personIds", "people", "person_2", "projectIds"),
        AsymmetricLink("projects", "project_1", "personIds", "people", "person_gone", "projectIds"),
    ]


def test_find_asymmetric_links_clean() -> None:
    """Test a consistent snapshot."""
    snapshot = {
        "notes": [
            {"id": "n1", "relatedNoteIds": ["n2"]},
            {"id": "n2", "relatedNoteIds": ["n1"]},
        ],
    }
    assert find_asymmetric_links(snapshot) == []
