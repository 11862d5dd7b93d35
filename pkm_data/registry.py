"""Module registry: one data module per collection, wired to its siblings."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass, fields
from pathlib import Path

import structlog
from google.cloud.firestore import AsyncClient

from pkm_data.backend import DataModule
from pkm_data.backends import (
    FirestoreDataModule,
    FirestoreRelationMutator,
    LocalDataModule,
    LocalRelationMutator,
    LocalStore,
)
from pkm_data.collections import COLLECTION_SPECS
from pkm_data.models import COLLECTION_NAMES, CollectionName, Document
from pkm_data.relations import RELATION_CONFIG

logger = structlog.get_logger()


@dataclass
class DataModules:
    """The six collection modules of one backend."""

    projects: DataModule
    notes: DataModule
    tasks: DataModule
    meetings: DataModule
    companies: DataModule
    people: DataModule

    def __post_init__(self) -> None:
        for module in self:
            module.set_data_modules(self)

    def __getitem__(self, collection: str) -> DataModule:
        if collection not in COLLECTION_NAMES:
            raise ValueError(f"Unknown collection: '{collection}'. Known collections: {', '.join(COLLECTION_NAMES)}")
        return getattr(self, collection)

    def __iter__(self) -> Iterator[DataModule]:
        return (getattr(self, f.name) for f in fields(self))

    def module_for_field(self, collection: CollectionName, relation_field: str) -> DataModule:
        """Return the module holding the targets of ``collection.relation_field``."""
        return self[RELATION_CONFIG[collection][relation_field].target_collection]

    async def snapshot(self) -> dict[CollectionName, list[Document]]:
        """Fetch every entity of every collection."""
        results = await asyncio.gather(*(module.list() for module in self))
        return dict(zip(COLLECTION_NAMES, results))


def create_local_data_modules(store: LocalStore | None = None) -> DataModules:
    """Create data modules backed by a (shared) local store."""
    store = store if store is not None else LocalStore()
    mutator = LocalRelationMutator(store)
    modules = {name: LocalDataModule(store, COLLECTION_SPECS[name], mutator) for name in COLLECTION_NAMES}
    logger.debug("Created local data modules", path=str(store.path) if store.path else None)
    return DataModules(**modules)


def create_firestore_data_modules(client: AsyncClient, uid: str) -> DataModules:
    """Create data modules backed by Firestore documents under ``users/{uid}``."""
    mutator = FirestoreRelationMutator(client, uid)
    modules = {name: FirestoreDataModule(client, uid, COLLECTION_SPECS[name], mutator) for name in COLLECTION_NAMES}
    logger.debug("Created Firestore data modules", uid=uid)
    return DataModules(**modules)


_active_data_modules: DataModules | None = None


def get_data_modules() -> DataModules:
    """Return the active data modules, creating local ones on first use."""
    global _active_data_modules
    if _active_data_modules is None:
        _active_data_modules = create_local_data_modules()
    return _active_data_modules


def set_data_modules(modules: DataModules) -> None:
    """Replace the active data modules."""
    global _active_data_modules
    _active_data_modules = modules


def reset_to_local_data_modules(path: str | Path | None = None) -> DataModules:
    """Replace the active data modules with fresh local ones."""
    modules = create_local_data_modules(LocalStore(path))
    set_data_modules(modules)
    return modules
