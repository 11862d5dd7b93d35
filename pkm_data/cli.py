"""CLI for the PKM data layer."""

import asyncio
import json
from typing import Annotated, Any, Literal

import structlog
from cyclopts import App, Parameter
from google.cloud.firestore import AsyncClient

from pkm_data.backends.local import LocalStore
from pkm_data.collections import get_collection_spec
from pkm_data.config import get_config
from pkm_data.config_commands import config_app
from pkm_data.link_commands import link_app
from pkm_data.models import Document
from pkm_data.registry import DataModules, create_firestore_data_modules, create_local_data_modules

logger = structlog.get_logger()

app = App(
    help="pkm - projects, notes, tasks, meetings, companies and people with two-way links",
)

app.command(link_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_data_modules_from_config() -> DataModules:
    """Build the data modules of the configured backend."""
    config = get_config()
    backend_type = config.get("backend")

    if backend_type == "local":
        return create_local_data_modules(LocalStore(config.get("local.path")))
    elif backend_type == "firestore":
        uid = config.require("firestore.uid")
        project = config.get("firestore.project")
        database = config.get("firestore.database")
        logger.debug("Connecting to Firestore", project=project, database=database)
        client = AsyncClient(project=project, database=database) if database else AsyncClient(project=project)
        return create_firestore_data_modules(client, uid)
    else:
        raise ValueError(f"Unknown backend: {backend_type}")


def parse_payload(data: str) -> dict[str, Any]:
    """Parse a JSON object given on the command line."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object")
    return payload


def describe(entity: Document) -> str:
    """One-line label for an entity."""
    if entity.get("title"):
        return entity["title"]
    if entity.get("name"):
        return entity["name"]
    full_name = " ".join(part for part in (entity.get("firstName"), entity.get("lastName")) if part)
    return full_name or ""


def print_entity(entity: Document) -> None:
    print(json.dumps(entity, indent=2, ensure_ascii=False))


@app.command
def create(collection: str, data: str = "{}") -> None:
    """Create an entity from a JSON object."""
    modules = get_data_modules_from_config()
    entity = asyncio.run(modules[collection].create(parse_payload(data)))
    print(f"Created {get_collection_spec(collection).entity_key} {entity['id']}: {describe(entity)}")


@app.command
def read(collection: str, entity_id: str) -> None:
    """Read an entity by ID."""
    modules = get_data_modules_from_config()
    entity = asyncio.run(modules[collection].get_by_id(entity_id))
    if entity is None:
        print(f"No {get_collection_spec(collection).entity_key} with ID {entity_id}")
        return
    print_entity(entity)


@app.command
def update(collection: str, entity_id: str, data: str) -> None:
    """Update an entity with a partial JSON object."""
    modules = get_data_modules_from_config()
    entity = asyncio.run(modules[collection].update(entity_id, parse_payload(data)))
    if entity is None:
        print(f"No {get_collection_spec(collection).entity_key} with ID {entity_id}")
        return
    print(f"Updated {get_collection_spec(collection).entity_key} {entity['id']}: {describe(entity)}")


@app.command
def delete(collection: str, *entity_ids: str) -> None:
    """Delete one or more entities."""
    modules = get_data_modules_from_config()

    async def _delete() -> int:
        deleted = 0
        for entity_id in entity_ids:
            if await modules[collection].delete(entity_id):
                deleted += 1
        return deleted

    deleted = asyncio.run(_delete())
    print(f"Deleted {deleted} of {len(entity_ids)} entity(ies)")


@app.command(name="list")
def list_entities(collection: str) -> None:
    """List every entity of a collection."""
    modules = get_data_modules_from_config()
    entities = asyncio.run(modules[collection].list())

    print(f"Found {len(entities)} entity(ies):\n")
    for entity in entities:
        print(f"  {entity['id']}: {describe(entity)}")


@app.command
def related(collection: str, entity_id: str) -> None:
    """Show an entity and every entity it links to."""
    modules = get_data_modules_from_config()
    records = asyncio.run(modules[collection].get_associated_records(entity_id))
    if records is None:
        print(f"No {get_collection_spec(collection).entity_key} with ID {entity_id}")
        return

    spec = get_collection_spec(collection)
    entity = records[spec.entity_key]
    print(f"{spec.entity_key.title()}: {entity['id']} {describe(entity)}\n")

    for key, rows in records.items():
        if key == spec.entity_key or not rows:
            continue
        print(f"{key[0].upper()}{key[1:]}:")
        for row in rows:
            print(f"  - {row['id']} {describe(row)}")
        print()


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


def run() -> None:
    """Console script entry point."""
    app.meta()


if __name__ == "__main__":
    run()
