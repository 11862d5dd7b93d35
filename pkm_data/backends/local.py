"""Local backend implementation using an in-process keyed store."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from pkm_data.backend import (
    DataModule,
    RelationMutator,
    build_created_entity,
    build_updated_entity,
    sanitize_document,
)
from pkm_data.collections import CollectionSpec
from pkm_data.models import (
    COLLECTION_NAMES,
    CollectionName,
    Document,
    EntityId,
    InboundCleanupSpec,
    RelationConfig,
    now_iso_date,
)
from pkm_data.relations import read_relation_ids, unique_ids
from pkm_data.runner import cleanup_inbound_references, detach_for_deleted, sync_bidirectional

logger = structlog.get_logger()


def _empty_state() -> dict[CollectionName, dict[EntityId, Document]]:
    return {name: {} for name in COLLECTION_NAMES}


class LocalStore:
    """Process-wide document store keyed by collection, then ID.

    When ``path`` is given the whole state is loaded from that JSON file on
    construction and written back after every ``set`` and ``delete``.

    Documents are copied on the way in and out, so callers never share
    state with the store.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        """Initialize the local store.

        Args:
            path: Optional JSON file used for durability
        """
        self.path = Path(path).expanduser() if path is not None else None
        self._state = self._load()
        logger.debug("Local store initialized", path=str(self.path) if self.path else None)

    def _load(self) -> dict[CollectionName, dict[EntityId, Document]]:
        state = _empty_state()
        if self.path is None or not self.path.exists():
            return state

        try:
            with open(self.path, "r") as f:
                parsed = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load local store, starting empty", path=str(self.path), error=str(e))
            return state

        if not isinstance(parsed, dict):
            logger.warning("Local store file is not an object, starting empty", path=str(self.path))
            return state

        for name in COLLECTION_NAMES:
            rows = parsed.get(name)
            if isinstance(rows, dict):
                state[name] = rows
        logger.debug("Local store loaded", counts={name: len(rows) for name, rows in state.items()})
        return state

    def _persist(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._state, f)

    def get_all(self, collection: CollectionName) -> list[Document]:
        return [copy.deepcopy(item) for item in self._state[collection].values()]

    def get_by_id(self, collection: CollectionName, entity_id: EntityId) -> Document | None:
        item = self._state[collection].get(entity_id)
        return copy.deepcopy(item) if item is not None else None

    def set(self, collection: CollectionName, item: Document) -> Document:
        """Insert or replace a copy of ``item`` and return another copy of the stored value."""
        self._state[collection][item["id"]] = copy.deepcopy(item)
        self._persist()
        return copy.deepcopy(item)

    def delete(self, collection: CollectionName, entity_id: EntityId) -> bool:
        """Remove an item, returning whether anything was removed."""
        if entity_id not in self._state[collection]:
            return False
        del self._state[collection][entity_id]
        self._persist()
        return True


class LocalRelationMutator(RelationMutator):
    """Reverse-link edits against a ``LocalStore``."""

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    async def add_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        related = self.store.get_by_id(config.target_collection, related_id)
        if related is None:
            logger.debug(
                "Related entity missing, skipping reverse link",
                collection=config.target_collection,
                entity_id=related_id,
            )
            return

        current = read_relation_ids(related, config.target_field)
        if source_id in current:
            return

        logger.debug(
            "Adding reverse link",
            collection=config.target_collection,
            entity_id=related_id,
            field=config.target_field,
            source_id=source_id,
        )
        self.store.set(
            config.target_collection,
            {**related, config.target_field: unique_ids([*current, source_id]), "updatedAt": now_iso_date()},
        )

    async def remove_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        related = self.store.get_by_id(config.target_collection, related_id)
        if related is None:
            return

        current = read_relation_ids(related, config.target_field)
        if source_id not in current:
            return

        logger.debug(
            "Removing reverse link",
            collection=config.target_collection,
            entity_id=related_id,
            field=config.target_field,
            source_id=source_id,
        )
        self.store.set(
            config.target_collection,
            {
                **related,
                config.target_field: [value for value in current if value != source_id],
                "updatedAt": now_iso_date(),
            },
        )

    async def cleanup_inbound_reference(self, spec: InboundCleanupSpec, deleted_id: EntityId) -> None:
        cleaned = 0
        for row in self.store.get_all(spec.source_collection):
            current = read_relation_ids(row, spec.source_field)
            if deleted_id not in current:
                continue
            self.store.set(
                spec.source_collection,
                {
                    **row,
                    spec.source_field: [value for value in current if value != deleted_id],
                    "updatedAt": now_iso_date(),
                },
            )
            cleaned += 1

        if cleaned:
            logger.debug(
                "Removed dangling references",
                collection=spec.source_collection,
                field=spec.source_field,
                deleted_id=deleted_id,
                count=cleaned,
            )


class LocalDataModule(DataModule):
    """Data module for one collection of a ``LocalStore``."""

    def __init__(self, store: LocalStore, spec: CollectionSpec, mutator: LocalRelationMutator | None = None) -> None:
        """Initialize a local data module.

        Args:
            store: Shared local store
            spec: Collection this module serves
            mutator: Reverse-link mutator (defaults to one over ``store``)
        """
        super().__init__(spec)
        self.store = store
        self.mutator = mutator or LocalRelationMutator(store)

    async def list(self) -> list[Document]:
        return self.store.get_all(self.collection)

    async def list_by_ids(self, ids: list[EntityId]) -> list[Document]:
        wanted = unique_ids(ids)
        if not wanted:
            return []

        rows = []
        for entity_id in wanted:
            row = self.store.get_by_id(self.collection, entity_id)
            if row is not None:
                rows.append(row)
        return rows

    async def get_by_id(self, entity_id: EntityId) -> Document | None:
        return self.store.get_by_id(self.collection, entity_id)

    async def create(self, data: Mapping[str, Any]) -> Document:
        entity = sanitize_document(build_created_entity(self.spec, data))
        logger.info("Creating entity", collection=self.collection, entity_id=entity["id"])

        created = self.store.set(self.collection, entity)
        await sync_bidirectional(
            self.collection,
            self.relation_fields,
            created,
            None,
            on_add=lambda m: self.mutator.add_reverse_link(m.config, m.related_id, m.source_id),
            on_remove=lambda m: self.mutator.remove_reverse_link(m.config, m.related_id, m.source_id),
        )
        return created

    async def update(self, entity_id: EntityId, data: Mapping[str, Any]) -> Document | None:
        existing = self.store.get_by_id(self.collection, entity_id)
        if existing is None:
            logger.debug("Entity not found for update", collection=self.collection, entity_id=entity_id)
            return None

        logger.info("Updating entity", collection=self.collection, entity_id=entity_id, fields=list(data.keys()))
        saved = self.store.set(self.collection, sanitize_document(build_updated_entity(self.spec, existing, data)))
        await sync_bidirectional(
            self.collection,
            self.relation_fields,
            saved,
            existing,
            on_add=lambda m: self.mutator.add_reverse_link(m.config, m.related_id, m.source_id),
            on_remove=lambda m: self.mutator.remove_reverse_link(m.config, m.related_id, m.source_id),
        )
        return saved

    async def delete(self, entity_id: EntityId) -> bool:
        existing = self.store.get_by_id(self.collection, entity_id)
        if existing is None or not self.store.delete(self.collection, entity_id):
            logger.debug("Entity not found for delete", collection=self.collection, entity_id=entity_id)
            return False

        logger.info("Deleted entity", collection=self.collection, entity_id=entity_id)
        await detach_for_deleted(
            self.collection,
            self.relation_fields,
            existing,
            on_remove=lambda m: self.mutator.remove_reverse_link(m.config, m.related_id, m.source_id),
        )
        await cleanup_inbound_references(
            self.collection,
            entity_id,
            on_spec=lambda spec: self.mutator.cleanup_inbound_reference(spec, entity_id),
        )
        return True

    async def list_by_relation(self, relation_field: str, related_id: EntityId) -> list[Document]:
        self._check_relation_field(relation_field)
        rows = self.store.get_all(self.collection)
        return [row for row in rows if related_id in read_relation_ids(row, relation_field)]
