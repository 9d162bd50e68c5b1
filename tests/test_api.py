"""HTTP contract tests for the scenario service."""

from __future__ import annotations

import tempfile
import time
import unittest
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi.testclient import TestClient

from scenably.browser.execution_engine import ExecutionEngine
from scenably.recorder.registry import SessionRegistry
from scenably.supervisor.app import create_app
from scenably.supervisor.scheduler import Scheduler
from scenably.supervisor.services import Services
from scenably.supervisor.settings import default_settings
from scenably.supervisor.store import ScenarioStore

TRANSCRIPT = """async def run(playwright):
    browser = await playwright.chromium.launch(headless=False)
    context = await browser.new_context()
    page = await context.new_page()
    await page.goto("https://example.com/")
    await page.get_by_label("Email").fill("user@example.com")
    await page.get_by_role("button", name="Sign in").click()
    await context.close()
    await browser.close()
"""


class _FakeLauncher:
    async def launch(self, url: str) -> str:
        return url

    async def terminate(self, handle: str) -> str:
        return TRANSCRIPT


class _FakeExecutor:
    def __init__(self):
        self.closed = False

    @asynccontextmanager
    async def open_context(self, *, debug: bool = False):
        yield object()

    async def close(self) -> None:
        self.closed = True


class _RouterStub:
    def __init__(self, fail_operation: str | None = None):
        self.fail_operation = fail_operation

    async def execute(self, action) -> None:
        if action.operation == self.fail_operation:
            raise RuntimeError("waiting for locator to be visible")


class ServiceApiTests(unittest.TestCase):
    """Exercise recording, scenario, execution and schedule endpoints end to end."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        settings = default_settings()
        settings["db_path"] = str(Path(self._tmp.name) / "scenably.db")
        store = ScenarioStore(Path(settings["db_path"]))
        self.router = _RouterStub()
        self.executor = _FakeExecutor()
        engine = ExecutionEngine(store, self.executor, router_factory=lambda page: self.router)
        self.services = Services(
            settings=settings,
            store=store,
            registry=SessionRegistry(_FakeLauncher()),
            engine=engine,
            scheduler=Scheduler(store, engine),
            executor=self.executor,
        )
        self.client = TestClient(create_app(self.services, start_driver=False))
        self.client.__enter__()
        self._client_open = True

    def tearDown(self) -> None:
        if self._client_open:
            self.client.__exit__(None, None, None)
        self._tmp.cleanup()

    def _create_scenario(self, **overrides) -> dict:
        body = {"name": "login", "target_url": "https://example.com/", "transcript": TRANSCRIPT}
        body.update(overrides)
        response = self.client.post("/scenarios", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _wait_for_execution(self, execution_id: str) -> dict:
        for _ in range(100):
            payload = self.client.get(f"/executions/{execution_id}").json()
            if payload["status"] != "RUNNING":
                return payload
            time.sleep(0.02)
        self.fail(f"execution {execution_id} never finished")

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.json()["status"], "ok")

    def test_interactive_recording_lifecycle(self) -> None:
        started = self.client.post("/recording/start", json={"url": "https:// https://example.com"}).json()
        self.assertEqual(started["status"], "RECORDING")

        stopped = self.client.post("/recording/stop", json={"session_id": started["session_id"], "save": True}).json()
        self.assertEqual(stopped["status"], "STOPPED")
        self.assertEqual(len(stopped["script"]["actions"]), 3)
        self.assertIn("get_by_label", stopped["code"])

        scenario = self._create_scenario(script=stopped["script"], transcript=None, session_id=started["session_id"])
        self.assertEqual(len(scenario["script"]["actions"]), 3)

        status = self.client.get(f"/recording/{started['session_id']}").json()
        self.assertEqual(status["status"], "COMPLETED")

    def test_headless_start_returns_navigation_template(self) -> None:
        response = self.client.post("/recording/start", json={"url": "https://example.com", "mode": "headless"})

        payload = response.json()
        self.assertEqual(payload["script"]["actions"], [{"operation": "navigate", "url": "https://example.com"}])
        self.assertIn('page.goto("https://example.com")', payload["code"])

    def test_invalid_url_is_400(self) -> None:
        response = self.client.post("/recording/start", json={"url": "not a url"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "INVALID_URL")

    def test_unknown_ids_are_404(self) -> None:
        for path in ("/recording/missing", "/scenarios/missing", "/executions/missing", "/schedules/missing"):
            with self.subTest(path=path):
                self.assertEqual(self.client.get(path).status_code, 404)

    def test_malformed_body_is_400(self) -> None:
        response = self.client.post("/scenarios", json={"name": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "INVALID_REQUEST")

    def test_scenario_crud_and_code(self) -> None:
        scenario = self._create_scenario()

        updated = self.client.put(
            f"/scenarios/{scenario['id']}",
            json={"script": {"actions": [{"operation": "navigate", "url": "https://example.com/next"}]}},
        ).json()
        self.assertEqual(len(updated["script"]["actions"]), 1)

        code = self.client.get(f"/scenarios/{scenario['id']}/code").json()["code"]
        self.assertIn("https://example.com/next", code)

        self.assertEqual(len(self.client.get("/scenarios").json()), 1)
        self.assertEqual(self.client.delete(f"/scenarios/{scenario['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/scenarios/{scenario['id']}").status_code, 404)

    def test_invalid_script_is_400(self) -> None:
        response = self.client.post(
            "/scenarios",
            json={"name": "bad", "target_url": "https://example.com", "script": {"actions": [{"operation": "fly"}]}},
        )
        self.assertEqual(response.status_code, 400)

    def test_execute_returns_running_then_success(self) -> None:
        scenario = self._create_scenario()

        response = self.client.post(f"/scenarios/{scenario['id']}/execute")
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["status"], "RUNNING")

        finished = self._wait_for_execution(response.json()["execution_id"])
        self.assertEqual(finished["status"], "SUCCESS")
        self.assertIsNotNone(finished["completed_at"])

    def test_failed_execution_reports_step(self) -> None:
        self.router.fail_operation = "fill"
        scenario = self._create_scenario()

        execution_id = self.client.post(f"/scenarios/{scenario['id']}/debug").json()["execution_id"]
        finished = self._wait_for_execution(execution_id)

        self.assertEqual(finished["status"], "FAILED")
        self.assertEqual(finished["trigger"], "debug")
        self.assertIn("Step 2", finished["error_message"])
        self.assertEqual(finished["failure"]["error_code"], "SEL_NOT_FOUND")

    def test_schedule_endpoints(self) -> None:
        scenario = self._create_scenario()

        saved = self.client.put(
            "/schedules",
            json={"scenario_id": scenario["id"], "frequency": "WEEKLY", "time": "7:30", "day_of_week": "fri,mon"},
        )
        self.assertEqual(saved.status_code, 200, saved.text)
        self.assertEqual(saved.json()["day_of_week"], "MON,FRI")
        self.assertEqual(saved.json()["time"], "07:30")

        toggled = self.client.post(f"/schedules/{scenario['id']}/toggle", json={"enabled": False}).json()
        self.assertFalse(toggled["enabled"])
        self.assertEqual(self.client.get(f"/schedules/{scenario['id']}/runs").json(), [])

        self.assertEqual(self.client.delete(f"/schedules/{scenario['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/schedules/{scenario['id']}").status_code, 404)

    def test_invalid_trigger_is_400(self) -> None:
        scenario = self._create_scenario()
        response = self.client.put(
            "/schedules",
            json={"scenario_id": scenario["id"], "frequency": "MONTHLY", "time": "09:00"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "INVALID_TRIGGER")
        self.assertEqual(self.client.get("/schedules").json(), [])

    def test_shutdown_closes_browsers(self) -> None:
        self.client.__exit__(None, None, None)
        self._client_open = False
        self.assertTrue(self.executor.closed)


if __name__ == "__main__":
    unittest.main()
