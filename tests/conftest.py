"""
测试公共夹具
"""

import logging
from typing import List

import pytest

from registry_hoster.errors import HosterError
from registry_hoster.models import ProcessRecord
from registry_hoster.query import ProcessQuery


class FakeQuery(ProcessQuery):
    """内存中的集群查询，记录调用参数"""

    def __init__(self, records: List[ProcessRecord] = None, error: HosterError = None):
        self.records = list(records or [])
        self.error = error
        self.calls = []

    def list_matching_processes(self, namespace, selector):
        self.calls.append((namespace, selector))
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def logger():
    test_logger = logging.getLogger('registry-hoster-test')
    test_logger.setLevel(logging.DEBUG)
    return test_logger


@pytest.fixture
def hosts_file(tmp_path):
    """返回一个写入给定内容的 hosts 文件路径"""

    def _write(content: str = ""):
        path = tmp_path / "hosts"
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def fake_query():
    return FakeQuery()
