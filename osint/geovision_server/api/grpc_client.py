"""
Async gRPC client for the Geovision services.

Speaks the same Struct-in, Struct-out protocol as GrpcServer. Failed RPCs
are raised as the matching GeovisionError subclass, so callers handle
BadRequestError / NotFoundError / UnimplementedError / InternalError the
same way they would in-process.
"""

from __future__ import annotations

import logging
from typing import Any

import grpc
from google.protobuf.struct_pb2 import Struct
from grpc import aio as grpc_aio

from ..errors import error_from_status
from .grpc_server import REQUEST_ID_METADATA, dict_to_struct, struct_to_dict
from .servicer import SERVICE_PACKAGE

logger = logging.getLogger(__name__)


class GrpcClient:
    """gRPC client for Geovision.

    This class handles all gRPC communication with the server.
    It manages connection lifecycle and provides async methods
    for all RPC operations.

    Example:
        >>> async with GrpcClient("localhost", 50051) as client:
        ...     source = await client.create_source({"name": "Reuters"})
        ...     await client.get_source(source["key"])
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 50051,
        *,
        secure: bool = False,
        credentials: grpc.ChannelCredentials | None = None,
        timeout: float | None = 30.0,
    ) -> None:
        """Initialize the gRPC client.

        Args:
            host: Server hostname
            port: Server port
            secure: Whether to use TLS
            credentials: Optional TLS credentials
            timeout: Per-call deadline in seconds
        """
        self._host = host
        self._port = port
        self._secure = secure
        self._credentials = credentials
        self._timeout = timeout
        self._channel: grpc_aio.Channel | None = None

    async def connect(self) -> None:
        """Establish connection to the server."""
        if self._channel is not None:
            return

        address = f"{self._host}:{self._port}"

        if self._secure:
            self._channel = grpc_aio.secure_channel(
                address,
                self._credentials or grpc.ssl_channel_credentials(),
            )
        else:
            self._channel = grpc_aio.insecure_channel(address)

        logger.debug(f"Connected to Geovision server at {address}")

    async def close(self) -> None:
        """Close the connection."""
        if self._channel:
            await self._channel.close()
            self._channel = None
            logger.debug("Disconnected from Geovision server")

    async def __aenter__(self) -> GrpcClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def call(
        self,
        service: str,
        method: str,
        request: dict[str, Any] | None = None,
        *,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        """Invoke ``geovision.<service>/<method>`` with a JSON-shaped request.

        Raises:
            GeovisionError: Subclass matching the RPC's status code
        """
        if self._channel is None:
            raise RuntimeError("Not connected. Call connect() first.")

        rpc = self._channel.unary_unary(
            f"/{SERVICE_PACKAGE}.{service}/{method}",
            request_serializer=Struct.SerializeToString,
            response_deserializer=Struct.FromString,
        )
        metadata = ((REQUEST_ID_METADATA, request_id),) if request_id else None
        try:
            response = await rpc(
                dict_to_struct(request or {}),
                timeout=self._timeout,
                metadata=metadata,
            )
        except grpc_aio.AioRpcError as e:
            raise error_from_status(e.code(), e.details() or "") from e
        return struct_to_dict(response)

    # Events

    async def create_event(self, event: dict[str, Any]) -> dict[str, Any]:
        return (await self.call("EventService", "CreateEvent", {"event": event}))["event"]

    async def get_event(self, key: str) -> dict[str, Any]:
        return (await self.call("EventService", "GetEvent", {"key": key}))["event"]

    async def update_event(self, key: str, event: dict[str, Any]) -> dict[str, Any]:
        response = await self.call("EventService", "UpdateEvent", {"key": key, "event": event})
        return response["event"]

    async def delete_event(self, key: str) -> None:
        await self.call("EventService", "DeleteEvent", {"key": key})

    async def get_events(self, start_time: int, end_time: int) -> dict[str, Any]:
        """Events in [start_time, end_time] with the edges internal to them."""
        response = await self.call(
            "EventService", "GetEvents", {"startTime": start_time, "endTime": end_time}
        )
        return {
            "events": response.get("events", []),
            "relations": response.get("relations", []),
        }

    async def get_event_related_entities(self, key: str) -> list[dict[str, Any]]:
        response = await self.call("EventService", "GetEventRelatedEntities", {"key": key})
        return response.get("entities", [])

    async def get_related_events(self, key: str) -> dict[str, Any]:
        response = await self.call("EventService", "GetRelatedEvents", {"key": key})
        return {
            "events": response.get("events", []),
            "relations": response.get("relations", []),
        }

    # Other entity kinds

    async def create_entity(self, kind: str, entity: dict[str, Any]) -> dict[str, Any]:
        """Create a person, organization, source or website.

        Args:
            kind: Singular kind name, e.g. ``"source"``
            entity: Entity attributes
        """
        service, suffix = self._service(kind)
        response = await self.call(service, f"Create{suffix}", {kind: entity})
        return response[kind]

    async def get_entity(self, kind: str, key: str) -> dict[str, Any]:
        service, suffix = self._service(kind)
        return (await self.call(service, f"Get{suffix}", {"key": key}))[kind]

    async def update_entity(self, kind: str, key: str, entity: dict[str, Any]) -> dict[str, Any]:
        service, suffix = self._service(kind)
        return (await self.call(service, f"Update{suffix}", {"key": key, kind: entity}))[kind]

    async def delete_entity(self, kind: str, key: str) -> None:
        service, suffix = self._service(kind)
        await self.call(service, f"Delete{suffix}", {"key": key})

    async def create_source(self, source: dict[str, Any]) -> dict[str, Any]:
        return await self.create_entity("source", source)

    async def get_source(self, key: str) -> dict[str, Any]:
        return await self.get_entity("source", key)

    async def get_persons(self) -> list[dict[str, Any]]:
        response = await self.call("PersonService", "GetPersons", {})
        return response.get("persons", [])

    @staticmethod
    def _service(kind: str) -> tuple[str, str]:
        suffix = kind.capitalize()
        return f"{suffix}Service", suffix

    # Relationships

    async def create_relationship(self, relationship: dict[str, Any]) -> dict[str, Any]:
        response = await self.call(
            "RelationshipService", "CreateRelationship", {"relationship": relationship}
        )
        return response["relationship"]

    async def update_relationship(
        self, relationship_id: str, relationship: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self.call(
            "RelationshipService",
            "UpdateRelationship",
            {"id": relationship_id, "relationship": relationship},
        )
        return response["relationship"]

    async def delete_relationship(self, relationship_id: str) -> dict[str, Any]:
        response = await self.call(
            "RelationshipService", "DeleteRelationship", {"id": relationship_id}
        )
        return response["relationship"]

    async def health(self) -> dict[str, Any]:
        """Get server health status."""
        return await self.call("HealthService", "Check", {})
