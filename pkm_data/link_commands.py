"""Link commands for the pkm CLI."""

import asyncio

from cyclopts import App

link_app = App(name="link", help="Inspect links between entities")


@link_app.command
def by(collection: str, field: str, related_id: str) -> None:
    """List entities of a collection whose relation field contains an ID."""
    from pkm_data.cli import describe, get_data_modules_from_config

    modules = get_data_modules_from_config()
    entities = asyncio.run(modules[collection].list_by_relation(field, related_id))

    if not entities:
        print(f"No {collection} link to {related_id} through {field}")
        return

    print(f"{collection} linking to {related_id} through {field}:\n")
    for entity in entities:
        print(f"  {entity['id']}: {describe(entity)}")


@link_app.command
def check() -> None:
    """Find links whose reverse side is missing."""
    from pkm_data.cli import get_data_modules_from_config
    from pkm_data.relations import find_asymmetric_links

    modules = get_data_modules_from_config()
    broken = find_asymmetric_links(asyncio.run(modules.snapshot()))

    if not broken:
        print("All links are symmetric")
        return

    print(f"Found {len(broken)} asymmetric link(s):\n")
    for i, link in enumerate(broken, 1):
        print(
            f"{i}. {link.source_collection}/{link.source_id}.{link.source_field} -> "
            f"{link.target_collection}/{link.target_id}.{link.target_field} (missing)"
        )
