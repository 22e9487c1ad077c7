"""Tests for env normalisation and platform variables."""

from uuid import uuid4

from snapline.models import Device, Instance, Snapshot
from snapline.services.environment import (
    device_platform_env,
    env_list_to_map,
    env_map_to_list,
    instance_platform_env,
    strip_platform_env,
    strip_platform_env_list,
    strip_settings_env,
    with_platform_env,
)


class TestStripPlatformEnv:
    def test_drops_reserved_keys(self):
        env = {"FF_DEVICE_ID": "1", "GREETING": "hi", "FF_X": ""}

        assert strip_platform_env(env) == {"GREETING": "hi"}

    def test_is_idempotent(self):
        env = {"FF_A": "1", "B": "2"}

        assert strip_platform_env(strip_platform_env(env)) == strip_platform_env(env)

    def test_none_gives_empty(self):
        assert strip_platform_env(None) == {}
        assert strip_platform_env_list(None) == []

    def test_list_form(self):
        env = [{"name": "FF_PROJECT_ID", "value": "x"}, {"name": "PORT", "value": "1880"}]

        assert strip_platform_env_list(env) == [{"name": "PORT", "value": "1880"}]

    def test_settings_copy_is_stripped(self):
        settings = {"settings": {}, "env": {"FF_A": "1", "B": "2"}, "modules": {}}

        result = strip_settings_env(settings)

        assert result["env"] == {"B": "2"}
        assert settings["env"] == {"FF_A": "1", "B": "2"}


class TestEnvConversion:
    def test_list_to_map_skips_reserved(self):
        env = [{"name": "A", "value": "1"}, {"name": "FF_B", "value": "2"}]

        assert env_list_to_map(env) == {"A": "1"}

    def test_map_to_list(self):
        assert env_map_to_list({"A": "1", "FF_B": "2"}) == [{"name": "A", "value": "1"}]


class TestPlatformEnv:
    def test_instance_vars(self):
        instance = Instance(id=uuid4(), name="prod")

        env = {entry["name"]: entry["value"] for entry in instance_platform_env(instance)}

        assert env["FF_INSTANCE_ID"] == str(instance.id)
        assert env["FF_INSTANCE_NAME"] == "prod"
        assert env["FF_PROJECT_NAME"] == "prod"

    def test_device_vars_are_flagged_platform(self):
        instance = Instance(id=uuid4(), name="prod")
        device = Device(id=7, name="pi", type="PI4", instance_id=instance.id)
        active = Snapshot(id=3, name="v3", instance_id=instance.id)

        entries = device_platform_env(device, instance, active)

        assert all(entry["platform"] for entry in entries)
        env = {entry["name"]: entry["value"] for entry in entries}
        assert env == {
            "FF_PROJECT_ID": str(instance.id),
            "FF_PROJECT_NAME": "prod",
            "FF_DEVICE_ID": "7",
            "FF_DEVICE_NAME": "pi",
            "FF_DEVICE_TYPE": "PI4",
            "FF_SNAPSHOT_ID": "3",
            "FF_SNAPSHOT_NAME": "v3",
        }

    def test_device_vars_without_instance_or_snapshot(self):
        device = Device(id=7, name="pi", type="PI4")

        env = {entry["name"]: entry["value"] for entry in device_platform_env(device, None, None)}

        assert env["FF_PROJECT_ID"] == ""
        assert env["FF_SNAPSHOT_ID"] == ""

    def test_user_vars_cannot_shadow_platform_vars(self):
        platform = [{"name": "FF_DEVICE_ID", "value": "7", "platform": True}]
        user_env = [{"name": "FF_DEVICE_ID", "value": "spoofed"}, {"name": "A", "value": "1"}]

        result = with_platform_env(platform, user_env)

        assert result == [*platform, {"name": "A", "value": "1"}]
