"""
E2E test fixtures for Geovision.

These tests require a reachable ArangoDB. Each test runs a full server
against its own throwaway database, dropped afterwards.

Environment:
    GEOVISION_E2E_TESTS=1 to enable
    ARANGO_URL, ARANGO_USERNAME, ARANGO_PASSWORD to point at the store
"""

import os
import uuid

import pytest
from arango import ArangoClient

from osint.geovision_server.api import GrpcClient
from osint.geovision_server.config import (
    ArangoConfig,
    GrpcConfig,
    HttpConfig,
    ServerConfig,
)
from osint.geovision_server.main import Server


@pytest.fixture
def arango_config() -> ArangoConfig:
    """Store settings with a unique database per test."""
    return ArangoConfig(
        url=os.environ.get("ARANGO_URL", "http://localhost:8529"),
        database=f"geovision_e2e_{uuid.uuid4().hex[:8]}",
        username=os.environ.get("ARANGO_USERNAME", "root"),
        password=os.environ.get("ARANGO_PASSWORD", ""),
    )


@pytest.fixture
async def server(arango_config):
    """Running server on free ports; drops its database on teardown."""
    config = ServerConfig(
        grpc=GrpcConfig(host="127.0.0.1", port=0, grace_period=0),
        http=HttpConfig(host="127.0.0.1", port=0),
        arango=arango_config,
    )
    server = Server(config)
    await server.setup()
    try:
        yield server
    finally:
        await server.stop()
        client = ArangoClient(hosts=arango_config.url)
        sys_db = client.db(
            "_system",
            username=arango_config.username,
            password=arango_config.password,
        )
        if sys_db.has_database(arango_config.database):
            sys_db.delete_database(arango_config.database)
        client.close()


@pytest.fixture
async def client(server):
    async with GrpcClient("127.0.0.1", server.grpc_server.port) as client:
        yield client


@pytest.fixture
def http_base_url(server) -> str:
    """HTTP base URL for the running server."""
    return f"http://127.0.0.1:{server.http_server.port}"
