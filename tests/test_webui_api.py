from __future__ import annotations

import unittest
from unittest import mock

from fastapi.testclient import TestClient

from screwtape.webui import DebuggerRegistry, create_app
from screwtape.webui.__main__ import main as serve
from screwtape.webui.app import _measure_steps


class ExecuteApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app())

    def test_returns_output_tape_and_steps(self) -> None:
        response = self.client.post("/api/execute", json={"code": "+++[>++<-]>"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(
            response.json(),
            {"output": "", "tape": [0, 6], "pointer_value": 6, "steps": 3 + 7 * 3 + 1},
        )

    def test_initial_tape(self) -> None:
        response = self.client.post("/api/execute", json={"code": ".>.", "tape": [72, 73]})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["output"], "HI")

    def test_wrapping_cells(self) -> None:
        response = self.client.post("/api/execute", json={"code": "-", "wrap": True})
        self.assertEqual(response.json()["tape"], [255])

    def test_rejects_empty_tape(self) -> None:
        response = self.client.post("/api/execute", json={"code": "+", "tape": []})
        self.assertEqual(response.status_code, 422)

    def test_rejects_non_integer_tape_values(self) -> None:
        for tape in ([1.5], ["5"]):
            with self.subTest(tape=tape):
                response = self.client.post("/api/execute", json={"code": "+", "tape": tape})
                self.assertEqual(response.status_code, 422, response.text)

    def test_unmatched_bracket_reports_position(self) -> None:
        response = self.client.post("/api/execute", json={"code": "[+]]"})
        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["index"], 3)
        self.assertEqual(body["kind"], "close")

    def test_infinite_program_hits_default_budget(self) -> None:
        response = self.client.post("/api/execute", json={"code": "+[]"})
        self.assertEqual(response.status_code, 409, response.text)
        self.assertIn("100000", response.json()["detail"])

    def test_explicit_step_budget(self) -> None:
        response = self.client.post("/api/execute", json={"code": "+[]", "max_steps": 20})
        self.assertEqual(response.status_code, 409)

    def test_loop_pairs(self) -> None:
        response = self.client.post("/api/loops", json={"code": ">[+>[+-]<]"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json(), {"pairs": [[1, 9], [4, 7]]})


class MeasureStepsTests(unittest.TestCase):
    def test_program_finishing_exactly_at_budget_is_not_capped(self) -> None:
        self.assertEqual(_measure_steps("+" * 5, 5), (5, False))

    def test_program_exceeding_budget_is_capped(self) -> None:
        self.assertEqual(_measure_steps("+" * 6, 5), (5, True))


class DebuggerApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = DebuggerRegistry(capacity=4)
        self.client = TestClient(create_app(self.registry))

    def _open(self, code: str, **payload) -> dict:
        body = {"code": code}
        body.update(payload)
        response = self.client.post("/api/debuggers", json=body)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_open_reports_initial_view(self) -> None:
        view = self._open("+++[-]")
        self.assertEqual(view["state"]["step"], 0)
        self.assertFalse(view["halted"])
        self.assertEqual(view["loop_pairs"], [[3, 5]])
        self.assertEqual(view["total_steps"], 3 + 3 * 3)
        self.assertFalse(view["total_steps_capped"])
        self.assertIn(view["debugger_id"], self.registry)

    def test_open_measures_infinite_program_as_capped(self) -> None:
        view = self._open("+[]")
        self.assertTrue(view["total_steps_capped"])

    def test_open_rejects_unmatched_brackets(self) -> None:
        response = self.client.post("/api/debuggers", json={"code": "[["})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["kind"], "open")

    def test_advance_and_show(self) -> None:
        debugger_id = self._open("<+.")["debugger_id"]
        response = self.client.post(f"/api/debuggers/{debugger_id}/advance", json={"count": 2})
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual([s["step"] for s in body["states"]], [1, 2])
        self.assertEqual(body["debugger"]["state"]["pointer"], -1)
        self.assertEqual(body["debugger"]["state"]["tape_start"], -1)

        shown = self.client.get(f"/api/debuggers/{debugger_id}").json()
        self.assertEqual(shown["state"]["step"], 2)
        self.assertEqual(shown["trace_size"], 3)

    def test_partner_breakpoint_stops_each_repetition(self) -> None:
        debugger_id = self._open("++[-]")["debugger_id"]
        response = self.client.put(f"/api/debuggers/{debugger_id}/partners/4")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["target"], 2)

        first = self.client.post(f"/api/debuggers/{debugger_id}/resume", json={}).json()
        self.assertEqual(first["debugger"]["stopped_at"], 2)
        self.assertEqual(first["debugger"]["state"]["step"], 2)
        second = self.client.post(f"/api/debuggers/{debugger_id}/resume", json={}).json()
        self.assertEqual(second["debugger"]["state"]["step"], 5)
        last = self.client.post(f"/api/debuggers/{debugger_id}/resume", json={}).json()
        self.assertTrue(last["debugger"]["halted"])

    def test_partner_requires_bracket(self) -> None:
        debugger_id = self._open("+[]")["debugger_id"]
        response = self.client.put(f"/api/debuggers/{debugger_id}/partners/0")
        self.assertEqual(response.status_code, 422)

    def test_set_and_clear_breakpoint(self) -> None:
        debugger_id = self._open("+++")["debugger_id"]
        added = self.client.put(f"/api/debuggers/{debugger_id}/breakpoints/1")
        self.assertEqual(added.json()["breakpoints"], [1])
        outside = self.client.put(f"/api/debuggers/{debugger_id}/breakpoints/3")
        self.assertEqual(outside.status_code, 422)
        cleared = self.client.delete(f"/api/debuggers/{debugger_id}/breakpoints/1")
        self.assertEqual(cleared.json()["breakpoints"], [])
        missing = self.client.delete(f"/api/debuggers/{debugger_id}/breakpoints/1")
        self.assertEqual(missing.status_code, 404)

    def test_step_budget_conflict(self) -> None:
        debugger_id = self._open("+[]", max_steps=5)["debugger_id"]
        response = self.client.post(f"/api/debuggers/{debugger_id}/resume", json={})
        self.assertEqual(response.status_code, 409)
        shown = self.client.get(f"/api/debuggers/{debugger_id}").json()
        self.assertTrue(shown["halted"])

    def test_rewind(self) -> None:
        debugger_id = self._open("+.")["debugger_id"]
        self.client.post(f"/api/debuggers/{debugger_id}/resume", json={})
        view = self.client.post(f"/api/debuggers/{debugger_id}/rewind").json()
        self.assertEqual(view["state"]["step"], 0)
        self.assertFalse(view["halted"])

    def test_unknown_and_closed_debuggers(self) -> None:
        self.assertEqual(self.client.get("/api/debuggers/missing").status_code, 404)
        debugger_id = self._open("+")["debugger_id"]
        self.assertEqual(self.client.delete(f"/api/debuggers/{debugger_id}").status_code, 204)
        self.assertEqual(self.client.delete(f"/api/debuggers/{debugger_id}").status_code, 404)
        self.assertEqual(self.client.get(f"/api/debuggers/{debugger_id}").status_code, 404)

    def test_registry_evicts_least_recently_used(self) -> None:
        ids = [self._open("+")["debugger_id"] for _ in range(4)]
        self.client.get(f"/api/debuggers/{ids[0]}")
        self._open("+")
        self.assertEqual(len(self.registry), 4)
        self.assertIn(ids[0], self.registry)
        self.assertNotIn(ids[1], self.registry)


class LauncherTests(unittest.TestCase):
    def test_runs_app_factory_with_options(self) -> None:
        with mock.patch("uvicorn.run") as run, mock.patch("logging.basicConfig"):
            self.assertEqual(serve(["--port", "9001", "--log-level", "debug"]), 0)
        run.assert_called_once_with(
            "screwtape.webui.app:create_app",
            factory=True,
            host="127.0.0.1",
            port=9001,
            log_level="debug",
        )


if __name__ == "__main__":
    unittest.main()
