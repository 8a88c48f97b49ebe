"""End-to-end tests: service, store, queue, worker and a local push gateway.

The live tests run the real FCM transport against an aiohttp application
standing in for the gateway.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from aiohttp import test_utils, web

from push_dispatch import PushService, parse_config
from push_dispatch.core.errors import RecordNotFoundError, UnauthorizedError, ValidationError
from push_dispatch.core.events import JOB_FAILED, QUEUED, Event
from push_dispatch.queue import InMemoryWorkQueue
from push_dispatch.store import JsonFileRecordStore
from push_dispatch.types import Job, JobState

pytestmark = pytest.mark.integration


class FakeGateway:
    """Local stand-in for the push gateway recording every request."""

    def __init__(self) -> None:
        self.requests: list[dict[str, object]] = []
        self.authorizations: list[str] = []
        self.status: int = 200

    async def handle(self, request: web.Request) -> web.Response:
        body: dict[str, object] = await request.json()
        self.requests.append(body)
        self.authorizations.append(request.headers.get("Authorization", ""))
        if self.status != 200:
            return web.Response(status=self.status, text="rejected")

        targets = body.get("registration_ids") or [body.get("to")]
        assert isinstance(targets, list)
        return web.json_response(
            {
                "multicast_id": 1,
                "success": len(targets),  # pyright: ignore[reportUnknownArgumentType]
                "failure": 0,
                "results": [{"message_id": f"m-{i}"} for i in range(len(targets))],  # pyright: ignore[reportUnknownArgumentType]
            }
        )


@pytest.fixture
async def gateway() -> AsyncIterator[tuple[FakeGateway, str]]:
    fake = FakeGateway()
    app = web.Application()
    _ = app.router.add_post("/fcm/send", fake.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield fake, str(server.make_url("/fcm/send"))
    finally:
        await server.close()


def _live_config(url: str, store_path: Path) -> dict[str, object]:
    return {
        "push": {
            "apiKey": "server-key",
            "profile": "production",
            "requestOptions": {"url": url, "timeout": 5},
            "sendOptions": {"retries": 0},
        },
        "queue": {"concurrency": 2, "timeout": 1.0},
        "store": {"path": str(store_path)},
    }


class TestSimulated:
    async def test_send_in_simulated_mode(self) -> None:
        async with PushService.from_config(parse_config({"push": {"profile": "development"}})) as service:
            record = await service.send({"recipients": ["abc"], "data": {"k": "v"}, "notification": {"title": "T"}})

        assert record.sent_at is not None
        assert record.response == {"message": "success"}
        assert record.results == []

    async def test_empty_recipients_persist_nothing(self) -> None:
        async with PushService.from_config(parse_config({})) as service:
            with pytest.raises(ValidationError):
                _ = await service.send({"to": [], "data": {"k": "v"}})

            assert await service.unsent() == []
            assert await service.sent() == []


class TestQueueing:
    async def test_queue_emits_queued_and_publishes_job(self) -> None:
        async with PushService.from_config(parse_config({"queue": {"name": "alerts"}})) as service:
            queued: list[Event] = []
            _ = service.on(QUEUED, queued.append)

            record = await service.queue({"to": "abc"})

            assert [e.payload for e in queued] == [record]
            assert record is not None
            assert record.sent_at is None
            assert isinstance(service.work_queue, InMemoryWorkQueue)
            [job] = service.work_queue.jobs(queue_name="alerts")
            assert job.data["id"] == record.id

    async def test_job_for_missing_record_fails_without_touching_records(self) -> None:
        async with PushService.from_config(parse_config({"queue": {}})) as service:
            existing = await service.create({"to": "abc"})
            assert isinstance(service.work_queue, InMemoryWorkQueue)
            job = await service.work_queue.create(service.queue_config.name, {"id": "missing"})
            failed: list[Event] = []
            _ = service.on(JOB_FAILED, failed.append)

            await service.worker.start()
            await service.work_queue.join(service.queue_config.name)

            assert job.state is JobState.FAILED
            assert job.error == str(RecordNotFoundError("missing"))
            assert [e.payload for e in failed] == [job]
            assert await service.unsent() == [existing]


class TestLiveGateway:
    async def test_send_delivers_and_aligns_results(
        self,
        gateway: tuple[FakeGateway, str],
        tmp_path: Path,
    ) -> None:
        fake, url = gateway
        store_path = tmp_path / "records.json"

        async with PushService.from_config(parse_config(_live_config(url, store_path))) as service:
            record = await service.send({"to": ["t1", "t2"], "notification": {"title": "Hi"}}, {"priority": "high"})

        assert fake.requests == [{"priority": "high", "notification": {"title": "Hi"}, "registration_ids": ["t1", "t2"]}]
        assert fake.authorizations == ["key=server-key"]
        assert record.sent_at is not None
        assert record.response is not None
        assert record.response["message"] == "success"
        assert record.results == [{"to": "t1", "message_id": "m-0"}, {"to": "t2", "message_id": "m-1"}]

        reloaded = await JsonFileRecordStore(store_path).find_by_id(record.id)
        assert reloaded == record

    async def test_unauthorized_is_persisted(
        self,
        gateway: tuple[FakeGateway, str],
        tmp_path: Path,
    ) -> None:
        fake, url = gateway
        fake.status = 401

        async with PushService.from_config(parse_config(_live_config(url, tmp_path / "records.json"))) as service:
            with pytest.raises(UnauthorizedError):
                _ = await service.send({"to": "t1"})

            [record] = await service.unsent()

        assert record.sent_at is None
        assert record.response == {
            "code": 401,
            "message": "Unauthorized (401). Check that your API key is correct.",
            "status": "Unauthorized",
        }

    async def test_requeue_then_worker_delivers(
        self,
        gateway: tuple[FakeGateway, str],
        tmp_path: Path,
    ) -> None:
        fake, url = gateway
        fake.status = 503
        config = parse_config(_live_config(url, tmp_path / "records.json"))

        async with PushService.from_config(config) as service:
            with pytest.raises(Exception, match="unavailable"):
                _ = await service.send({"to": "t1"})
            assert len(await service.unsent()) == 1

            fake.status = 200
            completed: list[Job] = []
            _ = service.on("job.complete", lambda event: completed.append(event.payload))  # pyright: ignore[reportArgumentType]
            requeued = await service.requeue()
            await service.worker.start()
            assert isinstance(service.work_queue, InMemoryWorkQueue)
            await service.work_queue.join(config.queue.name if config.queue else "push:queued")

            assert len(requeued) == 1
            assert len(completed) == 1
            assert await service.unsent() == []
            [record] = await service.sent()

        assert record.response is not None
        assert record.response["message"] == "success"
        assert len(fake.requests) == 2
