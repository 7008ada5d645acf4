import json
import tempfile
import unittest
from pathlib import Path

from fakes import ScriptedTransport, auth_failure, chat_body
from vevo.audit import AuditLog
from vevo.learning import LearningReviewer
from vevo.memory import ChatTurn, MemoryStore
from vevo.providers import ChatCompletionClient


class ParsePlanTests(unittest.TestCase):
    def test_plain_json(self):
        self.assertEqual(LearningReviewer.parse_plan('{"topics": ["tides"]}'), {"topics": ["tides"]})

    def test_fenced_json(self):
        raw = '```json\n{"topics": ["tides"]}\n```'
        self.assertEqual(LearningReviewer.parse_plan(raw), {"topics": ["tides"]})

    def test_malformed_json(self):
        plan = LearningReviewer.parse_plan("Study more about tides")
        self.assertEqual(plan["error"], "Malformed JSON")
        self.assertEqual(plan["raw_content"], "Study more about tides")

    def test_non_object_is_wrapped(self):
        self.assertEqual(LearningReviewer.parse_plan('["a", "b"]'), {"plan": ["a", "b"]})


class LearningReviewerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.memory = MemoryStore(self.tmpdir / "memory.json").load()
        self.log = AuditLog(self.tmpdir / "logs" / "learning.jsonl")

    def tearDown(self):
        self._tmp.cleanup()

    def reviewer(self, transport, environ) -> LearningReviewer:
        provider = ChatCompletionClient("openrouter", "https://chat.invalid", transport, credential_slots=["LEARN_KEY_1", "LEARN_KEY_2"])
        return LearningReviewer(provider, self.memory, self.tmpdir / "learning_plan.json", self.log, environ=environ)

    async def test_review_writes_plan_and_status(self):
        await self.memory.append(
            ChatTurn(id=self.memory.next_id(), message="tides?", reply="moon", confidence=0.8, sources=["openrouter"])
        )
        transport = ScriptedTransport([chat_body('{"topics": ["tides"]}')])
        reviewer = self.reviewer(transport, {"LEARN_KEY_1": "k1"})
        plan = await reviewer.review()
        self.assertEqual(plan, {"topics": ["tides"]})
        self.assertEqual(json.loads((self.tmpdir / "learning_plan.json").read_text()), plan)
        sent = transport.calls[0][2]["messages"]
        self.assertEqual(sent[0]["role"], "system")
        self.assertIn("tides?", sent[1]["content"])

        status = reviewer.status()
        self.assertEqual(status["learningPlan"], plan)
        self.assertIn("learning.plan", status["recentLogs"])

    async def test_review_fails_over_on_auth(self):
        transport = ScriptedTransport([auth_failure(401), chat_body('{"ok": true}')])
        reviewer = self.reviewer(transport, {"LEARN_KEY_1": "bad", "LEARN_KEY_2": "good"})
        self.assertEqual(await reviewer.review(), {"ok": True})
        self.assertEqual(transport.calls[1][3]["authorization"], "Bearer good")

    async def test_no_credentials_skips(self):
        transport = ScriptedTransport([chat_body("{}")])
        reviewer = self.reviewer(transport, {})
        self.assertIsNone(await reviewer.review())
        self.assertEqual(transport.calls, [])
        self.assertIn("learning.skipped", self.log.tail(1)[0])
        self.assertIsNone(reviewer.status()["learningPlan"])

    async def test_failed_review_is_logged(self):
        transport = ScriptedTransport([auth_failure(401)])
        reviewer = self.reviewer(transport, {"LEARN_KEY_1": "bad"})
        self.assertIsNone(await reviewer.review())
        self.assertIn("learning.failed", self.log.tail(1)[0])
        self.assertFalse((self.tmpdir / "learning_plan.json").exists())


if __name__ == "__main__":
    unittest.main()
