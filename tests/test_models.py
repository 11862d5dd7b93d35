"""Tests for data models."""

import re

import pytest

from pkm_data.models import (
    COLLECTION_NAMES,
    AsymmetricLink,
    RelationConfig,
    RelationMutation,
    RelationPair,
    create_entity_id,
    now_iso_date,
)


def test_now_iso_date_format() -> None:
    """Test UTC timestamp with milliseconds and a Z suffix."""
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", now_iso_date())


def test_create_entity_id_is_prefixed_and_unique() -> None:
    """Test entity ID generation."""
    first = create_entity_id("task")
    second = create_entity_id("task")

    assert first.startswith("task_")
    assert len(first) == len("task_") + 36
    assert first != second


def test_relation_pair_config() -> None:
    """Test that a pair exposes its forward config."""
    pair = RelationPair("tasks", "personIds", "people", "taskIds")

    assert pair.config == RelationConfig(target_collection="people", target_field="taskIds")


def test_relation_types_are_frozen() -> None:
    """Test that relation descriptors are immutable and hashable."""
    mutation = RelationMutation(
        config=RelationConfig(target_collection="people", target_field="taskIds"),
        related_id="person_1",
        source_id="task_1",
    )

    with pytest.raises(AttributeError):
        mutation.related_id = "person_2"  # type: ignore[misc]
    assert len({mutation, mutation}) == 1


def test_asymmetric_link_fields() -> None:
    """Test asymmetric link creation."""
    link = AsymmetricLink("projects", "project_1", "personIds", "people", "person_1", "projectIds")
    assert link.source_id == "project_1"
    assert link.target_field == "projectIds"


def test_collection_names_order() -> None:
    """Test the canonical collection order."""
    assert COLLECTION_NAMES == ("projects", "notes", "tasks", "meetings", "companies", "people")
