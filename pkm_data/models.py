"""Data models for the PKM data layer."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, TypedDict

EntityId = str
IsoDateString = str

CollectionName = Literal["projects", "notes", "tasks", "meetings", "companies", "people"]

COLLECTION_NAMES: tuple[CollectionName, ...] = ("projects", "notes", "tasks", "meetings", "companies", "people")

# Entity documents keep their wire field names so they round-trip unchanged
# through both backends.
Document = dict[str, Any]

ParaType = Literal["project", "area", "resource", "archive"]

TaskStatus = Literal[
    "inbox",
    "next_action",
    "in_progress",
    "waiting",
    "someday",
    "longterm",
    "complete",
    "archive",
]

TaskLevel = Literal["story", "task", "subtask"]


class BaseEntity(TypedDict):
    id: EntityId
    createdAt: IsoDateString
    updatedAt: IsoDateString


class _ProjectRequired(BaseEntity):
    name: str
    paraType: ParaType
    tags: list[str]
    personIds: list[EntityId]
    companyIds: list[EntityId]
    noteIds: list[EntityId]
    taskIds: list[EntityId]
    meetingIds: list[EntityId]


class Project(_ProjectRequired, total=False):
    description: str


class Note(BaseEntity):
    title: str
    body: str
    tags: list[str]
    relatedNoteIds: list[EntityId]
    personIds: list[EntityId]
    companyIds: list[EntityId]
    projectIds: list[EntityId]
    taskIds: list[EntityId]
    meetingIds: list[EntityId]


class _TaskRequired(BaseEntity):
    title: str
    tags: list[str]
    status: TaskStatus
    level: TaskLevel
    personIds: list[EntityId]
    companyIds: list[EntityId]
    projectIds: list[EntityId]
    noteIds: list[EntityId]
    meetingIds: list[EntityId]


class Task(_TaskRequired, total=False):
    description: str
    notes: str
    parentTaskId: EntityId | None
    dueDate: IsoDateString


class _MeetingRequired(BaseEntity):
    title: str
    tags: list[str]
    scheduledFor: IsoDateString
    personIds: list[EntityId]
    companyIds: list[EntityId]
    projectIds: list[EntityId]
    noteIds: list[EntityId]
    taskIds: list[EntityId]


class Meeting(_MeetingRequired, total=False):
    location: str


class _CompanyRequired(BaseEntity):
    name: str
    tags: list[str]
    personIds: list[EntityId]
    projectIds: list[EntityId]
    noteIds: list[EntityId]
    taskIds: list[EntityId]
    meetingIds: list[EntityId]


class Company(_CompanyRequired, total=False):
    website: str


class _PersonRequired(BaseEntity):
    firstName: str
    lastName: str
    tags: list[str]
    companyIds: list[EntityId]
    projectIds: list[EntityId]
    noteIds: list[EntityId]
    taskIds: list[EntityId]
    meetingIds: list[EntityId]


class Person(_PersonRequired, total=False):
    email: str


@dataclass(frozen=True)
class RelationConfig:
    """Where the reverse side of a relation field lives."""

    target_collection: CollectionName
    target_field: str


@dataclass(frozen=True)
class RelationPair:
    """One declared relation: a forward field and the reverse field it mirrors."""

    source_collection: CollectionName
    source_field: str
    target_collection: CollectionName
    target_field: str

    @property
    def config(self) -> RelationConfig:
        return RelationConfig(target_collection=self.target_collection, target_field=self.target_field)


@dataclass(frozen=True)
class RelationMutation:
    """A single reverse-link edit: add or remove ``source_id`` on ``related_id``."""

    config: RelationConfig
    related_id: EntityId
    source_id: EntityId


@dataclass(frozen=True)
class InboundCleanupSpec:
    """A field on another collection that may still hold a deleted ID."""

    source_collection: CollectionName
    source_field: str


@dataclass(frozen=True)
class AsymmetricLink:
    """A forward link whose reverse side is missing."""

    source_collection: CollectionName
    source_id: EntityId
    source_field: str
    target_collection: CollectionName
    target_id: EntityId
    target_field: str


def now_iso_date() -> IsoDateString:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_entity_id(prefix: str) -> EntityId:
    """Create a collection-prefixed, globally unique identifier."""
    return f"{prefix}_{uuid.uuid4()}"
