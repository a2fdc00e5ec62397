import pytest

from cors_proxy.config import ProxyConfig
from cors_proxy.utils_tests.upstream_mock import (
    ForbiddenUpstream,
    RecordingUpstream,
    UnreachableUpstream,
)

TEST_UPSTREAM_HOST = "http://localhost:9000/"


@pytest.fixture
def proxy_config():
    """Configuration with the default allow-headers."""
    return ProxyConfig(host=TEST_UPSTREAM_HOST)


@pytest.fixture
def custom_headers_config():
    return ProxyConfig(host=TEST_UPSTREAM_HOST, allow_headers="X-Custom")


@pytest.fixture
def upstream():
    return RecordingUpstream()


@pytest.fixture
def forbidden_upstream():
    return ForbiddenUpstream()


@pytest.fixture
def unreachable_upstream():
    return UnreachableUpstream()
