"""Backend implementations."""

from pkm_data.backends.firestore import FirestoreDataModule, FirestoreRelationMutator
from pkm_data.backends.local import LocalDataModule, LocalRelationMutator, LocalStore

__all__ = ["LocalStore", "LocalDataModule", "LocalRelationMutator", "FirestoreDataModule", "FirestoreRelationMutator"]
