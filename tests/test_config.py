"""
配置测试
"""

import pytest

from registry_hoster.config import Config

ENV_VARS = [
    "HOSTS_FILE", "REGISTRY_HOST", "REGISTRY_NAMESPACE", "REGISTRY_SELECTOR",
    "BACKEND", "KUBECONFIG", "DOCKER_HOST", "QUERY_TIMEOUT", "WATCH_TIMEOUT",
    "CLEANUP_ON_EXIT", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = Config.from_env()
    assert config.hosts_file_path == "/etc/hosts"
    assert config.registry_host == "goodrain.me"
    assert config.registry_namespace == "rbd-system"
    assert config.registry_selector == "name=rbd-hub"
    assert config.backend == "kubernetes"
    assert config.kubeconfig is None
    assert config.cleanup_on_exit is False
    config.validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("HOSTS_FILE", "/tmp/hosts")
    monkeypatch.setenv("REGISTRY_HOST", "hub.example.com")
    monkeypatch.setenv("BACKEND", "Docker")
    monkeypatch.setenv("QUERY_TIMEOUT", "2.5")
    monkeypatch.setenv("CLEANUP_ON_EXIT", "TRUE")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Config.from_env()

    assert config.hosts_file_path == "/tmp/hosts"
    assert config.registry_host == "hub.example.com"
    assert config.backend == "docker"
    assert config.query_timeout == 2.5
    assert config.cleanup_on_exit is True
    assert config.log_level == "DEBUG"
    config.validate()


@pytest.mark.parametrize("overrides", [
    {"log_level": "VERBOSE"},
    {"backend": "nomad"},
    {"registry_host": "two names"},
    {"registry_host": ""},
    {"query_timeout": 0},
    {"watch_timeout": -1},
    {"registry_selector": "name!=rbd-hub"},
])
def test_validate_rejects_bad_values(overrides):
    config = Config(**overrides)
    with pytest.raises(ValueError):
        config.validate()
