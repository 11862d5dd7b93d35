"""Firestore backend implementation using google-cloud-firestore."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.async_collection import AsyncCollectionReference
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from pkm_data.backend import (
    DataModule,
    RelationMutator,
    build_created_entity,
    build_updated_entity,
    sanitize_document,
)
from pkm_data.collections import CollectionSpec
from pkm_data.models import CollectionName, Document, EntityId, InboundCleanupSpec, RelationConfig, now_iso_date
from pkm_data.relations import read_relation_ids, unique_ids
from pkm_data.runner import cleanup_inbound_references, detach_for_deleted, sync_bidirectional

logger = structlog.get_logger()

# Firestore accepts at most this many values in one "in" predicate.
IN_QUERY_LIMIT = 10


def chunked(values: list[Any], size: int) -> list[list[Any]]:
    """Split ``values`` into consecutive chunks of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [values[index : index + size] for index in range(0, len(values), size)]


def user_collection(client: AsyncClient, uid: str, collection: CollectionName) -> AsyncCollectionReference:
    """Return the ``users/{uid}/{collection}`` collection reference."""
    return client.collection("users", uid, collection)


class FirestoreRelationMutator(RelationMutator):
    """Reverse-link edits against Firestore.

    Every edit is a full document read followed by a full document write.
    Two concurrent edits of the same document can therefore lose one of the
    changes.
    """

    def __init__(self, client: AsyncClient, uid: str) -> None:
        self.client = client
        self.uid = uid

    async def _rewrite_field(
        self,
        collection: CollectionName,
        entity_id: EntityId,
        field: str,
        source_id: EntityId,
        add: bool,
    ) -> None:
        ref = user_collection(self.client, self.uid, collection).document(entity_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            logger.debug("Related document missing, skipping reverse link", collection=collection, entity_id=entity_id)
            return

        document = snapshot.to_dict() or {}
        current = read_relation_ids(document, field)
        if add == (source_id in current):
            return

        updated = unique_ids([*current, source_id]) if add else [value for value in current if value != source_id]
        logger.debug(
            "Adding reverse link" if add else "Removing reverse link",
            collection=collection,
            entity_id=entity_id,
            field=field,
            source_id=source_id,
        )
        await ref.set(sanitize_document({**document, field: updated, "updatedAt": now_iso_date()}))

    async def add_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        await self._rewrite_field(config.target_collection, related_id, config.target_field, source_id, add=True)

    async def remove_reverse_link(self, config: RelationConfig, related_id: EntityId, source_id: EntityId) -> None:
        await self._rewrite_field(config.target_collection, related_id, config.target_field, source_id, add=False)

    async def cleanup_inbound_reference(self, spec: InboundCleanupSpec, deleted_id: EntityId) -> None:
        """Read the whole source collection and rewrite documents that still hold ``deleted_id``."""
        collection_ref = user_collection(self.client, self.uid, spec.source_collection)
        snapshots = await collection_ref.get()

        cleaned = 0
        for snapshot in snapshots:
            document = snapshot.to_dict() or {}
            current = read_relation_ids(document, spec.source_field)
            if deleted_id not in current:
                continue
            await collection_ref.document(snapshot.id).set(
                sanitize_document(
                    {
                        **document,
                        spec.source_field: [value for value in current if value != deleted_id],
                        "updatedAt": now_iso_date(),
                    }
                )
            )
            cleaned += 1

        logger.debug(
            "Scanned collection for dangling references",
            collection=spec.source_collection,
            field=spec.source_field,
            deleted_id=deleted_id,
            scanned=len(snapshots),
            count=cleaned,
        )


class FirestoreDataModule(DataModule):
    """Data module for one collection stored under ``users/{uid}/{collection}``."""

    def __init__(
        self,
        client: AsyncClient,
        uid: str,
        spec: CollectionSpec,
        mutator: FirestoreRelationMutator | None = None,
    ) -> None:
        """Initialize a Firestore data module.

        Args:
            client: Async Firestore client
            uid: Owner of the documents
            spec: Collection this module serves
            mutator: Reverse-link mutator (defaults to one over ``client``)
        """
        if not uid:
            raise ValueError("Firestore uid required")

        super().__init__(spec)
        self.client = client
        self.uid = uid
        self.mutator = mutator or FirestoreRelationMutator(client, uid)

    def _collection_ref(self) -> AsyncCollectionReference:
        return user_collection(self.client, self.uid, self.collection)

    async def list(self) -> list[Document]:
        snapshots = await self._collection_ref().get()
        logger.debug("Listed documents", collection=self.collection, count=len(snapshots))
        return [snapshot.to_dict() for snapshot in snapshots]

    async def list_by_ids(self, ids: list[EntityId]) -> list[Document]:
        wanted = unique_ids(ids)
        if not wanted:
            return []

        collection_ref = self._collection_ref()
        chunks = chunked(wanted, IN_QUERY_LIMIT)
        logger.debug("Listing documents by ID", collection=self.collection, count=len(wanted), chunks=len(chunks))

        results = await asyncio.gather(
            *(
                collection_ref.where(
                    filter=FieldFilter(
                        FieldPath.document_id(), "in", [collection_ref.document(entity_id) for entity_id in chunk]
                    )
                ).get()
                for chunk in chunks
            )
        )
        return [snapshot.to_dict() for snapshots in results for snapshot in snapshots]

    async def get_by_id(self, entity_id: EntityId) -> Document | None:
        snapshot = await self._collection_ref().document(entity_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def create(self, data: Mapping[str, Any]) -> Document:
        entity = sanitize_document(build_created_entity(self.spec, data))
        logger.info("Creating document", collection=self.collection, entity_id=entity["id"])

        await self._collection_ref().document(entity["id"]).set(entity)
        await sync_bidirectional(
            self.collection,
            self.relation_fields,
            entity,
            None,
            on_add=lambda m: self.mutator.add_reverse_link(m.config, m.related_id, m.source_id),
            on_remove=lambda m: self.mutator.remove_reverse_link(m.config, m.related_id, m.source_id),
        )
        return entity

    async def update(self, entity_id: EntityId, data: Mapping[str, Any]) -> Document | None:
        existing = await self.get_by_id(entity_id)
        if existing is None:
            logger.debug("Document not found for update", collection=self.collection, entity_id=entity_id)
            return None

        logger.info("Updating document", collection=self.collection, entity_id=entity_id, fields=list(data.keys()))
        entity = sanitize_document(build_updated_entity(self.spec, existing, data))
        await self._collection_ref().document(entity_id).set(entity)
        await sync_bidirectional(
            self.collection,
            self.relation_fields,
            entity,
            existing,
            on_add=lambda m: self.mutator.add_reverse_link(m.config, m.related_id, m.source_id),
            on_remove=lambda m: self.mutator.remove_reverse_link(m.config, m.related_id, m.source_id),
        )
        return entity

    async def delete(self, entity_id: EntityId) -> bool:
        existing = await self.get_by_id(entity_id)
        if existing is None:
            logger.debug("Document not found for delete", collection=self.collection, entity_id=entity_id)
            return False

        await self._collection_ref().document(entity_id).delete()
        logger.info("Deleted document", collection=self.collection, entity_id=entity_id)

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
        snapshots = await self._collection_ref().where(
            filter=FieldFilter(relation_field, "array_contains", related_id)
        ).get()
        return [snapshot.to_dict() for snapshot in snapshots]
