"""
Shared test fixtures for the Source client.
"""
from collections.abc import Generator
from datetime import timedelta

import pytest

from source_client.client import SourceClient
from source_client.config import ClientOptions
from tests.fixtures.service import (  # noqa: F401
    TEST_HOST,
    TEST_PASSWORD,
    TEST_USER,
    FakeSourceService,
    source_service,
)


@pytest.fixture
def client(source_service: FakeSourceService) -> Generator[SourceClient, None, None]:  # noqa: F811
    """Create a client wired to the fake service, with instant retries."""
    with SourceClient(
        TEST_HOST,
        TEST_USER,
        TEST_PASSWORD,
        retry_max=3,
        retry_wait_min=0,
        retry_wait_max=0,
        transport=source_service.transport,
    ) as c:
        yield c


@pytest.fixture
def type_example() -> ClientOptions:
    """The example used to register type AAA."""
    return ClientOptions(insecure_transport=False, request_timeout=timedelta(seconds=10))


@pytest.fixture
def registered_client(client: SourceClient, type_example: ClientOptions) -> SourceClient:
    """A client whose service already knows type AAA."""
    client.set_type("AAA", type_example)
    return client
