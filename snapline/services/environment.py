"""
Environment variable handling for snapshots, instances and devices.

Snapshots store env as a ``{name: value}`` map. Live instance and device
settings store it as a list of ``{"name", "value"}`` entries. Keys prefixed
``FF_`` are reserved for the platform: they are never stored and are
synthesized from identity when settings are read.
"""

from typing import Any, TypeAlias

from snapline.models import Device, Instance, Snapshot

PLATFORM_ENV_PREFIX = "FF_"

EnvList: TypeAlias = list[dict[str, Any]]


def is_platform_var(name: str) -> bool:
    return name.startswith(PLATFORM_ENV_PREFIX)


def strip_platform_env(env: dict[str, Any] | None) -> dict[str, Any]:
    """Drop platform-reserved keys from an env map. Idempotent."""
    return {key: value for key, value in (env or {}).items() if not is_platform_var(key)}


def strip_platform_env_list(env: EnvList | None) -> EnvList:
    """Drop platform-reserved entries from an env list. Idempotent."""
    if not isinstance(env, list):
        return []
    return [entry for entry in env if not is_platform_var(str(entry.get("name", "")))]


def env_list_to_map(env: EnvList | None) -> dict[str, Any]:
    return {entry["name"]: entry.get("value", "") for entry in strip_platform_env_list(env)}


def env_map_to_list(env: dict[str, Any] | None) -> EnvList:
    return [{"name": key, "value": value} for key, value in strip_platform_env(env).items()]


def strip_settings_env(settings: dict[str, Any] | None) -> dict[str, Any]:
    """Copy of snapshot settings with reserved env keys removed."""
    result = dict(settings or {})
    result["env"] = strip_platform_env(result.get("env"))
    return result


def _platform_var(name: str, value: object) -> dict[str, Any]:
    return {"name": name, "value": "" if value is None else str(value), "platform": True}


def instance_platform_env(instance: Instance) -> EnvList:
    """Platform variables injected into an instance's runtime."""
    return [
        _platform_var("FF_INSTANCE_ID", instance.id),
        _platform_var("FF_INSTANCE_NAME", instance.name),
        # Older runtimes still read the project names
        _platform_var("FF_PROJECT_ID", instance.id),
        _platform_var("FF_PROJECT_NAME", instance.name),
    ]


def device_platform_env(
    device: Device, instance: Instance | None, active_snapshot: Snapshot | None
) -> EnvList:
    """Platform variables injected into a device's runtime."""
    return [
        _platform_var("FF_PROJECT_ID", device.instance_id),
        _platform_var("FF_PROJECT_NAME", instance.name if instance else None),
        _platform_var("FF_DEVICE_ID", device.id),
        _platform_var("FF_DEVICE_NAME", device.name),
        _platform_var("FF_DEVICE_TYPE", device.type),
        _platform_var("FF_SNAPSHOT_ID", active_snapshot.id if active_snapshot else None),
        _platform_var("FF_SNAPSHOT_NAME", active_snapshot.name if active_snapshot else None),
    ]


def with_platform_env(platform_env: EnvList, env: EnvList | None) -> EnvList:
    """Platform variables first, followed by the user's own variables."""
    return [*platform_env, *strip_platform_env_list(env)]
