"""
主应用测试
"""

import threading
from unittest import mock

import pytest
from kubernetes.config import ConfigException

from registry_hoster import app as app_module
from registry_hoster.app import RegistryHoster
from registry_hoster.config import Config
from registry_hoster.errors import HostsIOError
from registry_hoster.events import DockerEventHandler, KubernetesPodWatcher
from registry_hoster.hosts_manager import END_OF_SECTION, START_OF_SECTION
from registry_hoster.query import DockerContainerQuery, KubernetesPodQuery

MANAGED = f"10.0.0.1 other.local\n{START_OF_SECTION}\n10.0.0.5 goodrain.me\n{END_OF_SECTION}\n"


@pytest.fixture
def docker_client(monkeypatch):
    client = mock.Mock()
    monkeypatch.setattr(app_module.docker, "from_env", mock.Mock(return_value=client))
    return client


def test_docker_backend_wiring(hosts_file, docker_client):
    config = Config(hosts_file_path=str(hosts_file(MANAGED)), backend="docker")

    hoster = RegistryHoster(config)

    docker_client.ping.assert_called_once()
    assert isinstance(hoster.query, DockerContainerQuery)
    assert isinstance(hoster.watcher, DockerEventHandler)
    assert hoster.watcher.label_filters == [
        "name=rbd-hub",
        "com.docker.compose.project=rbd-system",
    ]
    assert hoster.engine.hostname == "goodrain.me"
    assert hoster.engine.trigger is hoster.trigger


def test_kubernetes_backend_wiring(hosts_file, monkeypatch):
    load_incluster = mock.Mock()
    monkeypatch.setattr(app_module.k8s_config, "load_incluster_config", load_incluster)
    config = Config(hosts_file_path=str(hosts_file("")), query_timeout=3)

    hoster = RegistryHoster(config)

    load_incluster.assert_called_once()
    assert isinstance(hoster.query, KubernetesPodQuery)
    assert hoster.query.timeout == 3
    assert isinstance(hoster.watcher, KubernetesPodWatcher)
    assert hoster.watcher.request_timeout == 3


def test_kubernetes_config_error_is_raised(hosts_file, monkeypatch):
    monkeypatch.setattr(
        app_module.k8s_config,
        "load_incluster_config",
        mock.Mock(side_effect=ConfigException("not in cluster")),
    )
    config = Config(hosts_file_path=str(hosts_file("")))

    with pytest.raises(ConfigException):
        RegistryHoster(config)


def test_unreadable_hosts_file_fails_fast(tmp_path, docker_client):
    config = Config(hosts_file_path=str(tmp_path / "missing"), backend="docker")
    with pytest.raises(HostsIOError):
        RegistryHoster(config)


def test_invalid_config_fails_fast(hosts_file):
    with pytest.raises(ValueError):
        RegistryHoster(Config(hosts_file_path=str(hosts_file("")), backend="nomad"))


def test_initialize_schedules_first_sync(hosts_file, docker_client):
    hoster = RegistryHoster(Config(hosts_file_path=str(hosts_file("")), backend="docker"))
    hoster.initialize()
    assert hoster.trigger.pending


def test_cleanup_keeps_section_by_default(hosts_file, docker_client):
    path = hosts_file(MANAGED)
    hoster = RegistryHoster(Config(hosts_file_path=str(path), backend="docker"))

    hoster.cleanup()
    hoster.cleanup()

    assert path.read_text() == MANAGED
    assert hoster.engine.stopped
    assert not hoster.watcher.running
    docker_client.close.assert_called_once()


def test_cleanup_on_exit_removes_section(hosts_file, docker_client):
    path = hosts_file(MANAGED)
    config = Config(hosts_file_path=str(path), backend="docker", cleanup_on_exit=True)
    hoster = RegistryHoster(config)

    hoster.cleanup()

    assert path.read_text() == "10.0.0.1 other.local\n"


def test_run_returns_after_stop(hosts_file, docker_client, monkeypatch):
    hoster = RegistryHoster(Config(hosts_file_path=str(hosts_file("")), backend="docker"))
    monkeypatch.setattr(hoster.watcher, "start", mock.Mock())
    monkeypatch.setattr(hoster.engine, "sync_once", mock.Mock(return_value=True))

    thread = threading.Thread(target=hoster.run)
    thread.start()
    hoster.stop()
    thread.join(timeout=5)

    assert not thread.is_alive()
    hoster.watcher.start.assert_called_once()
