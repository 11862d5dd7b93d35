"""Backend interfaces for the PKM data layer."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from pkm_data.collections import CollectionSpec
from pkm_data.models import (
    CollectionName,
    Document,
    EntityId,
    InboundCleanupSpec,
    RelationConfig,
    create_entity_id,
    now_iso_date,
)
from pkm_data.relations import normalize_relations

if TYPE_CHECKING:
    from pkm_data.registry import DataModules

logger = structlog.get_logger()


class RelationMutator(ABC):
    """Storage-specific reverse-link edits.

    Implementations own the persistence details; planning and ordering stay in
    ``pkm_data.runner``. A related document that no longer exists is a no-op,
    never an error.
    """

    @abstractmethod
    async def add_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        """Add ``source_id`` to ``config.target_field`` of ``related_id``."""
        pass

    @abstractmethod
    async def remove_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        """Remove ``source_id`` from ``config.target_field`` of ``related_id``."""
        pass

    @abstractmethod
    async def cleanup_inbound_reference(self, spec: InboundCleanupSpec, deleted_id: EntityId) -> None:
        """Strip ``deleted_id`` from ``spec.source_field`` on every document of ``spec.source_collection``."""
        pass


def sanitize_document(value: Any) -> Any:
    """Recursively drop ``None`` from mappings and sequences before a write.

    Both backends store the sanitized form, so setting a field to ``None``
    removes it.
    """
    if isinstance(value, Mapping):
        return {key: sanitize_document(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [sanitize_document(item) for item in value if item is not None]
    return value


def build_created_entity(spec: CollectionSpec, data: Mapping[str, Any]) -> Document:
    """Merge relation defaults, caller input and generated fields into a new entity.

    Input wins over defaults and generated fields win over input. Relation
    arrays come back deduplicated.
    """
    timestamp = now_iso_date()
    entity = {
        **{field: list(value) for field, value in spec.relation_defaults.items()},
        **data,
        "id": create_entity_id(spec.id_prefix),
        "createdAt": timestamp,
        "updatedAt": timestamp,
    }
    return normalize_relations(entity, spec.relation_fields)


def build_updated_entity(spec: CollectionSpec, existing: Mapping[str, Any], data: Mapping[str, Any]) -> Document:
    """Merge a partial update over an existing entity and refresh ``updatedAt``.

    The identifier and creation timestamp are never taken from the update.
    """
    changes = {key: value for key, value in data.items() if key not in ("id", "createdAt")}
    entity = {**existing, **changes, "updatedAt": now_iso_date()}
    return normalize_relations(entity, spec.relation_fields)


class DataModule(ABC):
    """CRUD and association surface for one collection.

    One instance exists per collection per backend. Sibling modules are
    injected after construction with ``set_data_modules`` because every module
    needs the others to resolve associated records.
    """

    def __init__(self, spec: CollectionSpec) -> None:
        self.spec = spec
        self._data_modules: DataModules | None = None

    @property
    def collection(self) -> CollectionName:
        return self.spec.name

    @property
    def relation_fields(self) -> list[str]:
        return self.spec.relation_fields

    def set_data_modules(self, data_modules: DataModules) -> None:
        """Give this module access to its siblings."""
        self._data_modules = data_modules

    def _check_relation_field(self, relation_field: str) -> None:
        if relation_field not in self.spec.relation_defaults:
            raise ValueError(
                f"Unknown relation field '{relation_field}' for {self.collection}. "
                f"Declared fields: {', '.join(self.relation_fields)}"
            )

    @abstractmethod
    async def list(self) -> list[Document]:
        """List every entity in the collection."""
        pass

    @abstractmethod
    async def list_by_ids(self, ids: list[EntityId]) -> list[Document]:
        """List the entities whose IDs are in ``ids``. Missing IDs are skipped."""
        pass

    @abstractmethod
    async def get_by_id(self, entity_id: EntityId) -> Document | None:
        """Read an entity by ID."""
        pass

    @abstractmethod
    async def create(self, data: Mapping[str, Any]) -> Document:
        """Create an entity and link it into the reverse side of its relations."""
        pass

    @abstractmethod
    async def update(self, entity_id: EntityId, data: Mapping[str, Any]) -> Document | None:
        """Partially update an entity and resync its reverse links."""
        pass

    @abstractmethod
    async def delete(self, entity_id: EntityId) -> bool:
        """Delete an entity, detach it and sweep dangling references to it."""
        pass

    @abstractmethod
    async def list_by_relation(self, relation_field: str, related_id: EntityId) -> list[Document]:
        """List the entities whose ``relation_field`` contains ``related_id``."""
        pass

    async def get_associated_records(self, entity_id: EntityId) -> dict[str, Any] | None:
        """Get an entity together with every entity it links to.

        Sibling lookups run concurrently; the first failure aborts the call.

        Returns:
            Dictionary with structure:
            {
                "<entity key>": dict,          # e.g. "project"
                "<target collection>": list,   # e.g. "people", "notes"
                ...
            }
            or None if the entity does not exist or siblings are not wired.
        """
        entity = await self.get_by_id(entity_id)
        if entity is None or self._data_modules is None:
            return None

        fields = self.relation_fields
        logger.debug("Fetching associated records", collection=self.collection, entity_id=entity_id)
        results = await asyncio.gather(
            *(
                self._data_modules.module_for_field(self.collection, field).list_by_ids(entity.get(field) or [])
                for field in fields
            )
        )

        records: dict[str, Any] = {self.spec.entity_key: entity}
        for field, rows in zip(fields, results):
            records[self.spec.association_key(field)] = rows
        return records
