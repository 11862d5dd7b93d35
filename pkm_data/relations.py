"""Relation domain: the relation table and pure planning helpers.

Everything in this module is free of I/O. Backends feed entities in and get
back descriptors of the reverse-side edits they have to perform.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from pkm_data.models import (
    COLLECTION_NAMES,
    AsymmetricLink,
    CollectionName,
    EntityId,
    InboundCleanupSpec,
    RelationConfig,
    RelationMutation,
    RelationPair,
)

RELATION_PAIRS: list[RelationPair] = [
    RelationPair("projects", "personIds", "people", "projectIds"),
    RelationPair("projects", "companyIds", "companies", "projectIds"),
    RelationPair("projects", "noteIds", "notes", "projectIds"),
    RelationPair("projects", "taskIds", "tasks", "projectIds"),
    RelationPair("projects", "meetingIds", "meetings", "projectIds"),
    RelationPair("notes", "relatedNoteIds", "notes", "relatedNoteIds"),
    RelationPair("notes", "personIds", "people", "noteIds"),
    RelationPair("notes", "companyIds", "companies", "noteIds"),
    RelationPair("notes", "projectIds", "projects", "noteIds"),
    RelationPair("notes", "taskIds", "tasks", "noteIds"),
    RelationPair("notes", "meetingIds", "meetings", "noteIds"),
    RelationPair("tasks", "personIds", "people", "taskIds"),
    RelationPair("tasks", "companyIds", "companies", "taskIds"),
    RelationPair("tasks", "projectIds", "projects", "taskIds"),
    RelationPair("tasks", "noteIds", "notes", "taskIds"),
    RelationPair("tasks", "meetingIds", "meetings", "taskIds"),
    RelationPair("meetings", "personIds", "people", "meetingIds"),
    RelationPair("meetings", "companyIds", "companies", "meetingIds"),
    RelationPair("meetings", "projectIds", "projects", "meetingIds"),
    RelationPair("meetings", "noteIds", "notes", "meetingIds"),
    RelationPair("meetings", "taskIds", "tasks", "meetingIds"),
    RelationPair("companies", "personIds", "people", "companyIds"),
    RelationPair("companies", "projectIds", "projects", "companyIds"),
    RelationPair("companies", "noteIds", "notes", "companyIds"),
    RelationPair("companies", "taskIds", "tasks", "companyIds"),
    RelationPair("companies", "meetingIds", "meetings", "companyIds"),
    RelationPair("people", "companyIds", "companies", "personIds"),
    RelationPair("people", "projectIds", "projects", "personIds"),
    RelationPair("people", "noteIds", "notes", "personIds"),
    RelationPair("people", "taskIds", "tasks", "personIds"),
    RelationPair("people", "meetingIds", "meetings", "personIds"),
]


def _build_relation_config(pairs: Iterable[RelationPair]) -> dict[CollectionName, dict[str, RelationConfig]]:
    config: dict[CollectionName, dict[str, RelationConfig]] = {name: {} for name in COLLECTION_NAMES}
    for pair in pairs:
        fields = config[pair.source_collection]
        if pair.source_field in fields:
            raise ValueError(f"Duplicate relation declared for {pair.source_collection}.{pair.source_field}")
        fields[pair.source_field] = pair.config
    return config


RELATION_CONFIG: dict[CollectionName, dict[str, RelationConfig]] = _build_relation_config(RELATION_PAIRS)


def unique_ids(values: Iterable[EntityId | None]) -> list[EntityId]:
    """Deduplicate IDs, keeping first-seen order and dropping empty values."""
    return list(dict.fromkeys(value for value in values if value))


def relation_field_names(defaults: Mapping[str, list[EntityId]]) -> list[str]:
    """Return the relation field names a collection declares, in declaration order."""
    return list(defaults.keys())


def read_relation_ids(entity: Mapping[str, Any] | None, field: str) -> list[EntityId]:
    """Read a relation array from an entity, treating anything that is not a list as empty."""
    if not entity:
        return []
    value = entity.get(field)
    return list(value) if isinstance(value, list) else []


def normalize_relations(entity: Mapping[str, Any], relation_fields: Iterable[str]) -> dict[str, Any]:
    """Return a copy of ``entity`` with every relation field present and deduplicated."""
    normalized = dict(entity)
    for field in relation_fields:
        current = normalized.get(field)
        normalized[field] = unique_ids(current) if isinstance(current, list) else []
    return normalized


def plan_bidirectional_mutations(
    collection: CollectionName,
    relation_fields: Iterable[str],
    next_entity: Mapping[str, Any],
    previous_entity: Mapping[str, Any] | None,
) -> tuple[list[RelationMutation], list[RelationMutation]]:
    """Diff two versions of an entity into reverse-link additions and removals.

    A ``previous_entity`` of ``None`` is a pure create, so every related ID is
    an addition. Fields without an entry in the relation table are skipped.

    Returns:
        ``(additions, removals)``, each ordered by field declaration order and
        then by position inside the field.
    """
    collection_config = RELATION_CONFIG[collection]
    source_id = next_entity["id"]
    additions: list[RelationMutation] = []
    removals: list[RelationMutation] = []

    for field in relation_fields:
        config = collection_config.get(field)
        if config is None:
            continue

        previous_ids = unique_ids(read_relation_ids(previous_entity, field))
        next_ids = unique_ids(read_relation_ids(next_entity, field))
        previous_set = set(previous_ids)
        next_set = set(next_ids)

        additions.extend(
            RelationMutation(config=config, related_id=related_id, source_id=source_id)
            for related_id in next_ids
            if related_id not in previous_set
        )
        removals.extend(
            RelationMutation(config=config, related_id=related_id, source_id=source_id)
            for related_id in previous_ids
            if related_id not in next_set
        )

    return additions, removals


def plan_detach_mutations(
    collection: CollectionName,
    relation_fields: Iterable[str],
    deleted_entity: Mapping[str, Any],
) -> list[RelationMutation]:
    """Plan the removals that detach a deleted entity from everything it linked to."""
    collection_config = RELATION_CONFIG[collection]
    removals: list[RelationMutation] = []

    for field in relation_fields:
        config = collection_config.get(field)
        if config is None:
            continue
        removals.extend(
            RelationMutation(config=config, related_id=related_id, source_id=deleted_entity["id"])
            for related_id in unique_ids(read_relation_ids(deleted_entity, field))
        )

    return removals


def plan_inbound_cleanup_specs(target_collection: CollectionName) -> list[InboundCleanupSpec]:
    """List every (collection, field) whose relation points at ``target_collection``."""
    return [
        InboundCleanupSpec(source_collection=pair.source_collection, source_field=pair.source_field)
        for pair in RELATION_PAIRS
        if pair.target_collection == target_collection
    ]


def find_asymmetric_links(snapshot: Mapping[CollectionName, Iterable[Mapping[str, Any]]]) -> list[AsymmetricLink]:
    """Find forward links whose reverse side is missing.

    Args:
        snapshot: Every entity of every collection, keyed by collection name.
            Collections absent from the snapshot are treated as empty.

    Returns:
        One ``AsymmetricLink`` per forward ID with no matching reverse ID,
        including IDs that point at entities which do not exist.
    """
    by_id: dict[CollectionName, dict[EntityId, Mapping[str, Any]]] = {
        name: {entity["id"]: entity for entity in snapshot.get(name, [])} for name in COLLECTION_NAMES
    }

    broken: list[AsymmetricLink] = []
    for pair in RELATION_PAIRS:
        for source_id, source in by_id[pair.source_collection].items():
            for target_id in unique_ids(read_relation_ids(source, pair.source_field)):
                target = by_id[pair.target_collection].get(target_id)
                if target is not None and source_id in read_relation_ids(target, pair.target_field):
                    continue
                broken.append(
                    AsymmetricLink(
                        source_collection=pair.source_collection,
                        source_id=source_id,
                        source_field=pair.source_field,
                        target_collection=pair.target_collection,
                        target_id=target_id,
                        target_field=pair.target_field,
                    )
                )
    return broken
