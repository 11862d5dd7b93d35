"""Per-collection declarations: ID prefix, entity key and relation defaults."""

from dataclasses import dataclass, field

from pkm_data.models import CollectionName, EntityId
from pkm_data.relations import RELATION_CONFIG, relation_field_names


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of one entity collection."""

    name: CollectionName
    id_prefix: str
    entity_key: str
    relation_defaults: dict[str, list[EntityId]] = field(default_factory=dict)

    @property
    def relation_fields(self) -> list[str]:
        return relation_field_names(self.relation_defaults)

    def association_key(self, relation_field: str) -> str:
        """Key under which the records of ``relation_field`` appear in associated records."""
        target = RELATION_CONFIG[self.name][relation_field].target_collection
        if target == self.name:
            return "related" + target.capitalize()
        return target


COLLECTION_SPECS: dict[CollectionName, CollectionSpec] = {
    "projects": CollectionSpec(
        name="projects",
        id_prefix="project",
        entity_key="project",
        relation_defaults={"personIds": [], "companyIds": [], "noteIds": [], "taskIds": [], "meetingIds": []},
    ),
    "notes": CollectionSpec(
        name="notes",
        id_prefix="note",
        entity_key="note",
        relation_defaults={
            "relatedNoteIds": [],
            "personIds": [],
            "companyIds": [],
            "projectIds": [],
            "taskIds": [],
            "meetingIds": [],
        },
    ),
    "tasks": CollectionSpec(
        name="tasks",
        id_prefix="task",
        entity_key="task",
        relation_defaults={"personIds": [], "companyIds": [], "projectIds": [], "noteIds": [], "meetingIds": []},
    ),
    "meetings": CollectionSpec(
        name="meetings",
        id_prefix="meeting",
        entity_key="meeting",
        relation_defaults={"personIds": [], "companyIds": [], "projectIds": [], "noteIds": [], "taskIds": []},
    ),
    "companies": CollectionSpec(
        name="companies",
        id_prefix="company",
        entity_key="company",
        relation_defaults={"personIds": [], "projectIds": [], "noteIds": [], "taskIds": [], "meetingIds": []},
    ),
    "people": CollectionSpec(
        name="people",
        id_prefix="person",
        entity_key="person",
        relation_defaults={"companyIds": [], "projectIds": [], "noteIds": [], "taskIds": [], "meetingIds": []},
    ),
}


def get_collection_spec(name: str) -> CollectionSpec:
    """Look up a collection by name.

    Raises:
        ValueError: If the collection is unknown
    """
    try:
        return COLLECTION_SPECS[name]  # type: ignore[index]
    except KeyError:
        raise ValueError(f"Unknown collection: '{name}'. Known collections: {', '.join(COLLECTION_SPECS)}") from None
