"""Configuration commands for the pkm CLI."""

from cyclopts import App

from pkm_data.config import BACKENDS, KNOWN_KEYS, get_config

config_app = App(name="config", help="Manage backend configuration")


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, see ``pkm config keys``
        value: Configuration value
        global_: Write to ~/.pkm-data instead of ./.pkm-data
    """
    if key == "backend" and value not in BACKENDS:
        raise ValueError(f"Unknown backend: '{value}'. Choose one of: {', '.join(BACKENDS)}")
    get_config(use_global=global_).set(key, value)
    print(f"Set {key} = {value} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a configuration setting."""
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show the effective value of a setting."""
    value = get_config(use_global=global_).get(key)
    print(f"{key} is not set" if value is None else f"{key} = {value}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List the explicitly set configuration values."""
    settings = get_config(use_global=global_).list()
    if not settings:
        print(f"No {_scope(global_)} configuration settings")
        return

    print(f"Settings ({_scope(global_)}):\n")
    width = max(len(key) for key in settings)
    for key, value in settings.items():
        print(f"  {key.ljust(width)} = {value}")


@config_app.command
def keys() -> None:
    """Describe the configuration keys pkm understands."""
    for key, description in KNOWN_KEYS.items():
        print(f"{key}: {description}")
