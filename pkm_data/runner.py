"""Relation mutation runner.

Turns a before/after pair of entities into reverse-side edits and hands each
one to a callback. The runner never touches a store itself, so the same code
drives every backend.

Mutations are applied one at a time, in field declaration order, additions
before removals. Nothing here is transactional: if a callback raises, the
edits already applied stay applied and the error propagates to the caller.
"""

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

import structlog

from pkm_data.models import CollectionName, InboundCleanupSpec, RelationMutation
from pkm_data.relations import plan_bidirectional_mutations, plan_detach_mutations, plan_inbound_cleanup_specs

logger = structlog.get_logger()

T = TypeVar("T")

MutationCallback = Callable[[RelationMutation], Awaitable[None] | None]
CleanupCallback = Callable[[InboundCleanupSpec], Awaitable[None] | None]


async def _apply_each(items: Iterable[T], callback: Callable[[T], Awaitable[None] | None]) -> None:
    for item in items:
        result = callback(item)
        if inspect.isawaitable(result):
            await result


async def sync_bidirectional(
    collection: CollectionName,
    relation_fields: Iterable[str],
    next_entity: Mapping[str, Any],
    previous_entity: Mapping[str, Any] | None,
    on_add: MutationCallback,
    on_remove: MutationCallback,
) -> None:
    """Mirror the relation changes between two versions of an entity.

    Args:
        collection: Collection the entity belongs to
        relation_fields: Relation fields the collection declares
        next_entity: Entity as just persisted
        previous_entity: Entity before the change, or None for a create
        on_add: Called once per reverse link to add
        on_remove: Called once per reverse link to remove
    """
    additions, removals = plan_bidirectional_mutations(collection, relation_fields, next_entity, previous_entity)
    logger.debug(
        "Syncing bidirectional relations",
        collection=collection,
        entity_id=next_entity["id"],
        additions=len(additions),
        removals=len(removals),
    )
    await _apply_each(additions, on_add)
    await _apply_each(removals, on_remove)


async def detach_for_deleted(
    collection: CollectionName,
    relation_fields: Iterable[str],
    deleted_entity: Mapping[str, Any],
    on_remove: MutationCallback,
) -> None:
    """Remove a deleted entity from the reverse side of each of its relations."""
    removals = plan_detach_mutations(collection, relation_fields, deleted_entity)
    logger.debug(
        "Detaching deleted entity", collection=collection, entity_id=deleted_entity["id"], removals=len(removals)
    )
    await _apply_each(removals, on_remove)


async def cleanup_inbound_references(
    target_collection: CollectionName,
    deleted_id: str,
    on_spec: CleanupCallback,
) -> None:
    """Emit one cleanup spec per relation field that can point at ``target_collection``."""
    specs = plan_inbound_cleanup_specs(target_collection)
    logger.debug("Cleaning inbound references", collection=target_collection, entity_id=deleted_id, specs=len(specs))
    await _apply_each(specs, on_spec)
