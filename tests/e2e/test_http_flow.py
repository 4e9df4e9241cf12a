"""
End-to-end tests for the HTTP façade against a real ArangoDB.

Tests cover:
- Create and read back through REST
- Event window and related entities over HTTP
- Error bodies
"""

import os

import httpx
import pytest

E2E_ENABLED = os.environ.get("GEOVISION_E2E_TESTS", "0") == "1"
pytestmark = pytest.mark.skipif(
    not E2E_ENABLED, reason="E2E tests disabled. Set GEOVISION_E2E_TESTS=1 to enable."
)


class TestHttpFlow:
    """End-to-end tests through the REST endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_read_website(self, http_base_url: str):
        async with httpx.AsyncClient(base_url=http_base_url) as client:
            create_response = await client.post(
                "/v1/websites", json={"website": {"url": "https://example.org"}}
            )
            assert create_response.status_code == 201
            website = create_response.json()["website"]

            get_response = await client.get(f"/v1/websites/{website['key']}")
            assert get_response.status_code == 200
            assert get_response.json()["website"]["url"] == "https://example.org"

    @pytest.mark.asyncio
    async def test_event_graph(self, http_base_url: str):
        async with httpx.AsyncClient(base_url=http_base_url) as client:
            events = []
            for happened_at in (1000, 2000):
                response = await client.post("/v1/events", json={"event": {"happenedAt": happened_at}})
                events.append(response.json()["event"])
            response = await client.post("/v1/persons", json={"person": {"name": "Ada"}})
            person = response.json()["person"]

            for target, name in ((events[1]["id"], "related to"), (person["id"], "attended by")):
                response = await client.post(
                    "/v1/relationships",
                    json={"relationship": {"from": events[0]["id"], "to": target, "name": name}},
                )
                assert response.status_code == 201

            window = (await client.get("/v1/events", params={"startTime": 1, "endTime": 5000})).json()
            assert len(window["events"]) == 2
            assert len(window["relations"]) == 1

            response = await client.get(f"/v1/events/{events[0]['key']}/related-entities")
            assert response.status_code == 200
            assert [e["type"] for e in response.json()["entities"]] == ["persons"]

    @pytest.mark.asyncio
    async def test_not_found_body(self, http_base_url: str):
        async with httpx.AsyncClient(base_url=http_base_url) as client:
            response = await client.get("/v1/organizations/does-not-exist")

            assert response.status_code == 404
            assert response.json() == {"error": "Organization not found", "code": "NOT_FOUND"}
