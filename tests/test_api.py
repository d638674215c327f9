from io import BytesIO

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook

from agentdist.api import create_app
from agentdist.config import Settings
from agentdist.distribution import distribute
from agentdist.models import CanonicalRecord
from agentdist.persistence import DistributionStore, ManifestDraft
from agentdist.pipeline import PipelineResult


ADMIN = {"X-User-Id": "admin-1"}


def _sample_contacts() -> str:
    return """FirstName,Phone,Notes
John,1234567890,x
Jane,2222222222,y
Sam,3333333333,z
"""


@pytest.fixture
async def client(store: DistributionStore):
    app = create_app(Settings(db_path=store.db_path, max_upload_bytes=4096), store=store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest.mark.anyio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"


@pytest.mark.anyio
async def test_distribute_csv(client: AsyncClient, store: DistributionStore):
    alice = store.add_agent(name="Alice")
    bob = store.add_agent(name="Bob")
    files = {"file": ("contacts.csv", _sample_contacts(), "text/csv")}

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["filename"] == "contacts.csv"
    assert data["total_records"] == 3
    assert data["agents_count"] == 2
    assert data["distribution"] == [
        {"agent_id": alice.agent_id, "agent_name": "Alice", "count": 2},
        {"agent_id": bob.agent_id, "agent_name": "Bob", "count": 1},
    ]
    manifest = store.get_upload(data["upload_id"])
    assert manifest is not None
    assert manifest.status == "completed"
    assert manifest.uploaded_by == "admin-1"


@pytest.mark.anyio
async def test_distribute_xlsx(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["first_name", "PHONE", "Note"])
    sheet.append(["John", "1234567890", "x"])
    buffer = BytesIO()
    workbook.save(buffer)
    files = {
        "file": (
            "contacts.xlsx",
            buffer.getvalue(),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    }

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json()["data"]["total_records"] == 1


@pytest.mark.anyio
async def test_distribute_requires_identity(client: AsyncClient):
    files = {"file": ("contacts.csv", _sample_contacts(), "text/csv")}
    resp = await client.post("/api/upload/distribute", files=files)
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authorization required"}


@pytest.mark.anyio
async def test_distribute_rejects_disallowed_type(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    files = {"file": ("contacts.txt", _sample_contacts(), "text/plain")}

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json()["message"] == "Only CSV, XLS, and XLSX files are allowed"


@pytest.mark.anyio
async def test_distribute_rejects_large_file(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    rows = "".join(f"Contact {index},{index:010d},note\n" for index in range(400))
    files = {"file": ("big.csv", "FirstName,Phone,Notes\n" + rows, "text/csv")}

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json()["message"] == "File too large"
    assert store.list_uploads() == []


@pytest.mark.anyio
async def test_distribute_schema_failure(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    files = {"file": ("contacts.csv", "FirstName,Notes\nJohn,x\n", "text/csv")}

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["reason"] == "schema_validation_failed"
    assert body["errors"] == ["Missing required field: Phone"]
    assert store.list_uploads() == []


@pytest.mark.anyio
async def test_distribute_without_agents(client: AsyncClient, store: DistributionStore):
    files = {"file": ("contacts.csv", _sample_contacts(), "text/csv")}

    resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 400
    assert resp.json()["reason"] == "no_eligible_workers"
    assert store.list_uploads() == []


@pytest.mark.anyio
async def test_history_and_distribution_detail(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    for name in ("first.csv", "second.csv"):
        files = {"file": (name, _sample_contacts(), "text/csv")}
        resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)
        assert resp.status_code == 200

    resp = await client.get("/api/upload/history", headers=ADMIN)
    assert resp.status_code == 200
    uploads = resp.json()["data"]["uploads"]
    assert [upload["filename"] for upload in uploads] == ["second.csv", "first.csv"]
    assert all(upload["status"] == "completed" for upload in uploads)

    resp = await client.get(f"/api/upload/{uploads[0]['upload_id']}/distribution", headers=ADMIN)
    assert resp.status_code == 200
    detail = resp.json()["data"]
    assert detail["upload"]["filename"] == "second.csv"
    assert [item["contact_name"] for item in detail["distribution"]] == ["John", "Jane", "Sam"]

    resp = await client.get("/api/upload/missing/distribution", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Upload not found"


@pytest.mark.anyio
async def test_assigned_lists_pagination(client: AsyncClient, store: DistributionStore):
    agent = store.add_agent(name="Alice", email="Alice@Example.com")
    records = [CanonicalRecord(contact_name=f"C{index}", phone=str(index)) for index in range(23)]
    store.commit(
        ManifestDraft(filename="bulk.csv", original_count=23, uploaded_by="admin-1"),
        distribute(records, [agent.snapshot()]),
    )

    counts = []
    for page in (1, 2, 3):
        resp = await client.get(
            f"/api/agents/{agent.agent_id}/assigned-lists",
            params={"page": page, "limit": 10},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        counts.append(len(data["assigned_lists"]))
        assert data["pagination"] == {
            "current_page": page,
            "total_pages": 3,
            "total_count": 23,
            "per_page": 10,
        }
        assert data["agent"]["email"] == "alice@example.com"
        assert all(item["upload_filename"] == "bulk.csv" for item in data["assigned_lists"])
    assert counts == [10, 10, 3]


@pytest.mark.anyio
async def test_assigned_lists_default_page_size_and_empty(client: AsyncClient, store: DistributionStore):
    agent = store.add_agent(name="Idle")

    resp = await client.get(f"/api/agents/{agent.agent_id}/assigned-lists", headers=ADMIN)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["assigned_lists"] == []
    assert data["pagination"] == {"current_page": 1, "total_pages": 0, "total_count": 0, "per_page": 10}


@pytest.mark.anyio
async def test_assigned_lists_unknown_agent(client: AsyncClient):
    resp = await client.get("/api/agents/missing/assigned-lists", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Agent not found"}


@pytest.mark.anyio
async def test_list_agents_with_counts(client: AsyncClient, store: DistributionStore):
    store.add_agent(name="Alice")
    store.add_agent(name="Bob")
    files = {"file": ("contacts.csv", _sample_contacts(), "text/csv")}
    await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    resp = await client.get("/api/agents", headers=ADMIN)

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    counts = {agent["name"]: agent["assigned_lists_count"] for agent in body["data"]["agents"]}
    assert counts == {"Alice": 2, "Bob": 1}


@pytest.mark.anyio
async def test_distribute_success_without_manifest_is_server_error(store: DistributionStore, monkeypatch: pytest.MonkeyPatch):
    app = create_app(Settings(db_path=store.db_path), store=store)
    monkeypatch.setattr(
        app.state.pipeline,
        "run",
        lambda *args, **kwargs: PipelineResult(stage="persisted", filename="contacts.csv", message="ok"),
    )
    files = {"file": ("contacts.csv", _sample_contacts(), "text/csv")}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        resp = await client.post("/api/upload/distribute", files=files, headers=ADMIN)

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Upload record missing"}
