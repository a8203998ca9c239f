"""
hosts 行解析测试
"""

from registry_hoster.errors import LineParseError
from registry_hoster.models import HostsLine, ProcessRecord, ResolvedEndpoint


def test_blank_line_keeps_only_raw():
    for raw in ("", "   ", "\t"):
        line = HostsLine.parse(raw)
        assert line.raw == raw
        assert line.address is None
        assert line.hostnames == []
        assert line.parse_error is None
        assert line.is_blank
        assert not line.is_comment


def test_comment_line_is_not_parsed():
    line = HostsLine.parse("   # 127.0.0.1 commented.local")
    assert line.is_comment
    assert line.address is None
    assert line.hostnames == []
    assert line.parse_error is None


def test_address_line():
    line = HostsLine.parse("10.0.0.1\tother.local  alias.local")
    assert line.address == "10.0.0.1"
    assert line.hostnames == ["other.local", "alias.local"]
    assert line.parse_error is None
    assert str(line) == "10.0.0.1\tother.local  alias.local"


def test_ipv6_address_line():
    line = HostsLine.parse("::1 localhost ip6-localhost")
    assert line.address == "::1"
    assert line.hostnames == ["localhost", "ip6-localhost"]
    assert line.parse_error is None


def test_duplicate_hostnames_from_source_are_kept():
    line = HostsLine.parse("10.0.0.1 a.local a.local")
    assert line.hostnames == ["a.local", "a.local"]


def test_bad_address_is_flagged_not_dropped():
    line = HostsLine.parse("not-an-ip some.host")
    assert isinstance(line.parse_error, LineParseError)
    assert "not-an-ip" in str(line.parse_error)
    assert line.raw == "not-an-ip some.host"
    assert line.hostnames == ["some.host"]


def test_from_mapping_builds_address_prefixed_line():
    line = HostsLine.from_mapping("10.0.0.5", ["registry.local", "hub.local"])
    assert line.raw == "10.0.0.5 registry.local hub.local"
    assert line.address == "10.0.0.5"
    assert line.hostnames == ["registry.local", "hub.local"]


def test_resolved_endpoint_line():
    endpoint = ResolvedEndpoint(address="10.0.0.5", hostname="registry.local")
    assert endpoint.to_hosts_line() == "10.0.0.5 registry.local"
    assert str(endpoint) == "registry.local -> 10.0.0.5"


def test_process_record_defaults():
    record = ProcessRecord(host_ip="10.0.0.5", ready=True)
    assert record.name == ""
