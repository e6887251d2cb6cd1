from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from dh_common.errors import (
    ConfigurationError,
    HostCreateError,
    HostExistsError,
    HostNotFoundError,
    StoreError,
)
from dh_drivers.ec2.driver import Ec2Driver, Ec2DriverOptions
from dh_drivers.url import UrlDriverOptions
from dh_hosts.registry import DriverRegistry, RegisteredDriver
from dh_hosts.store import ACTIVE_FILE_NAME, Store, default_root
from tests.helpers.fakes import FakeEc2Api, FakeShell, api_error


pytestmark = pytest.mark.unit_hosts

URL_OPTS = UrlDriverOptions(url="tcp://10.1.2.3:2375")


@pytest.fixture
def store(tmp_path: Path, registry: DriverRegistry) -> Store:
    return Store(path=tmp_path / "hosts", registry=registry)


def _ec2_registry(registry: DriverRegistry, api: FakeEc2Api) -> DriverRegistry:
    scripted = DriverRegistry()
    for name in registry.names():
        if name != "ec2":
            scripted.register(name, registry.get(name))
    scripted.register(
        "ec2",
        RegisteredDriver(
            factory=lambda path: Ec2Driver(
                path,
                api_factory=api.factory,
                shell=FakeShell(),
                sleep=lambda _: None,
                port_probe=lambda *_: True,
            ),
            options_model=Ec2DriverOptions,
        ),
    )
    return scripted


def _names(store: Store) -> list[str]:
    return [host.name for host in store.list()]


def test_default_root_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DOCKER_HOSTS_ROOT", str(tmp_path / "r"))
    assert default_root() == tmp_path / "r"
    monkeypatch.delenv("DOCKER_HOSTS_ROOT")
    assert default_root() == Path.home() / ".docker" / "hosts"


def test_list_missing_root_has_only_default(store: Store) -> None:
    assert not store.path.exists()
    assert _names(store) == ["default"]


def test_list_empty_root_has_only_default(store: Store) -> None:
    store.path.mkdir(parents=True)
    assert _names(store) == ["default"]


def test_list_default_directory_not_duplicated(store: Store) -> None:
    (store.path / "default").mkdir(parents=True)
    store.create("web", "url", URL_OPTS)
    assert _names(store) == ["default", "web"]


def test_list_skips_unloadable_hosts(store: Store, caplog) -> None:
    store.create("good", "url", URL_OPTS)
    broken = store.path / "broken"
    broken.mkdir()
    (broken / "config.json").write_text("{", encoding="utf-8")
    assert _names(store) == ["default", "good"]
    assert "broken" in caplog.text


def test_create_persists_descriptor(store: Store) -> None:
    host = store.create("web", "url", URL_OPTS)
    descriptor = json.loads(host.config_path.read_text(encoding="utf-8"))
    assert descriptor == {
        "name": "web",
        "driver_name": "url",
        "driver": {"url": "tcp://10.1.2.3:2375"},
    }
    assert stat.S_IMODE(os.stat(host.config_path).st_mode) == 0o600
    assert stat.S_IMODE(os.stat(host.path).st_mode) == 0o700

    loaded = Store(path=store.path, registry=store.registry).load("web")
    assert loaded.driver_name == "url"
    assert loaded.get_url() == "tcp://10.1.2.3:2375"


def test_duplicate_create_makes_no_calls(tmp_path: Path, registry: DriverRegistry) -> None:
    api = FakeEc2Api()
    store = Store(path=tmp_path, registry=_ec2_registry(registry, api))
    options = Ec2DriverOptions(access_key="a", secret_key="s")
    store.create("dup", "ec2", options)

    calls_before = list(api.calls)
    files_before = {
        path: path.read_bytes() for path in tmp_path.rglob("*") if path.is_file()
    }
    with pytest.raises(HostExistsError):
        store.create("dup", "ec2", options)
    assert api.calls == calls_before
    assert {
        path: path.read_bytes() for path in tmp_path.rglob("*") if path.is_file()
    } == files_before


def test_default_name_is_taken(store: Store) -> None:
    with pytest.raises(HostExistsError):
        store.create("default", "url", URL_OPTS)


def test_invalid_name_rejected(store: Store) -> None:
    with pytest.raises(StoreError, match="Invalid host name"):
        store.create("../escape", "url", URL_OPTS)


def test_options_error_leaves_no_directory(
    tmp_path: Path, registry: DriverRegistry, clean_docker_env
) -> None:
    api = FakeEc2Api()
    store = Store(path=tmp_path, registry=_ec2_registry(registry, api))
    with pytest.raises(ConfigurationError, match="AWS_ACCESS_KEY_ID"):
        store.create("nocreds", "ec2", Ec2DriverOptions())
    assert not (tmp_path / "nocreds").exists()
    assert api.calls == []


def test_partial_create_returns_host(tmp_path: Path, registry: DriverRegistry) -> None:
    api = FakeEc2Api(failures={"run_instance": [api_error("RunInstances", "InsufficientInstanceCapacity")]})
    store = Store(path=tmp_path, registry=_ec2_registry(registry, api))
    with pytest.raises(HostCreateError) as excinfo:
        store.create("half", "ec2", Ec2DriverOptions(access_key="a", secret_key="s"))
    host = excinfo.value.host
    assert host.name == "half"
    assert host.driver.config.key_name.endswith("-key")
    assert host.driver.config.instance_id == ""
    assert host.config_path.exists()

    # The partial host can still be removed.
    store.remove("half")
    assert not (tmp_path / "half").exists()
    assert api.counts["delete_key_pair"] == 1


def test_active_pointer_survives_new_store(store: Store) -> None:
    assert store.get_active().name == "default"
    host = store.create("web", "url", URL_OPTS)
    store.set_active(host)
    fresh = Store(path=store.path, registry=store.registry)
    assert fresh.get_active().name == "web"
    assert fresh.is_active(host)
    assert stat.S_IMODE(os.stat(store.path / ACTIVE_FILE_NAME).st_mode) == 0o600


def test_remove_clears_active_and_directory(store: Store) -> None:
    host = store.create("web", "url", URL_OPTS)
    store.set_active(host)
    store.remove("web")
    assert not host.path.exists()
    assert not (store.path / ACTIVE_FILE_NAME).exists()
    assert store.get_active().name == "default"


def test_remove_keeps_other_active(store: Store) -> None:
    keep = store.create("keep", "url", URL_OPTS)
    store.create("drop", "url", URL_OPTS)
    store.set_active(keep)
    store.remove("drop")
    assert store.get_active().name == "keep"


def test_remove_default_rejected(store: Store) -> None:
    with pytest.raises(StoreError, match="default host cannot be removed"):
        store.remove("default")


def test_load_missing_host(store: Store) -> None:
    with pytest.raises(HostNotFoundError):
        store.load("ghost")
    assert not store.exists("ghost")
    assert store.exists("default")


def test_descriptor_without_driver_name(store: Store) -> None:
    path = store.path / "odd"
    path.mkdir(parents=True)
    (path / "config.json").write_text(json.dumps({"name": "odd"}), encoding="utf-8")
    with pytest.raises(StoreError, match="driver_name"):
        store.load("odd")


def test_save_rewrites_changed_fields(store: Store) -> None:
    host = store.create("web", "url", URL_OPTS)
    host.driver.config.url = "tcp://10.9.9.9:2375"
    store.save(host)
    assert store.load("web").get_url() == "tcp://10.9.9.9:2375"
