"""
Registry Hoster - 让节点的 /etc/hosts 始终指向私有镜像仓库的当前地址
"""

__version__ = "1.0.0"
__author__ = "Registry Hoster Project"

from registry_hoster.app import RegistryHoster
from registry_hoster.config import Config
from registry_hoster.engine import HostsSyncEngine
from registry_hoster.hosts_manager import HostsDocument
from registry_hoster.models import HostsLine, ResolvedEndpoint

__all__ = [
    "RegistryHoster",
    "Config",
    "HostsSyncEngine",
    "HostsDocument",
    "HostsLine",
    "ResolvedEndpoint",
]
