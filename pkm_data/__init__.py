"""PKM data layer: entity collections kept in bidirectional sync."""

from pkm_data.registry import (
    DataModules,
    create_firestore_data_modules,
    create_local_data_modules,
    get_data_modules,
    reset_to_local_data_modules,
    set_data_modules,
)

__all__ = [
    "DataModules",
    "create_local_data_modules",
    "create_firestore_data_modules",
    "get_data_modules",
    "set_data_modules",
    "reset_to_local_data_modules",
]
