"""End-to-end tests for chat handling with fake providers."""
import json
import tempfile
import unittest
from pathlib import Path

from fakes import FakeProvider, ScriptedTransport, auth_failure, server_failure
from vevo.chat import ChatService
from vevo.confidence import CLARIFICATION_REPLY
from vevo.memory import LearningQueue, MemoryStore
from vevo.providers import ChatCompletionClient

ENV = {"FAKE_KEY_1": "key-one", "FAKE_KEY_2": "key-two"}


class ChatServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.memory = MemoryStore(self.tmpdir / "memory.json").load()
        self.queue = LearningQueue(self.tmpdir / "queue.json").load()

    def tearDown(self):
        self._tmp.cleanup()

    def service(self, providers, **kwargs) -> ChatService:
        return ChatService(providers, self.memory, self.queue, environ=ENV, **kwargs)

    async def test_single_provider_reply(self):
        provider = FakeProvider("openrouter", ["Paris is the capital of France."])
        response = await self.service([provider]).handle_chat("Capital of France?")
        self.assertFalse(response.is_fallback)
        self.assertEqual(response.reply, "Paris is the capital of France.")
        self.assertEqual(response.sources, ["openrouter"])
        self.assertAlmostEqual(response.confidence, 0.8)
        self.assertTrue(response.memory_update)
        self.assertIn("Used openrouter key 1", response.reasoning_summary)
        self.assertEqual(len(self.memory), 1)
        self.assertEqual(len(self.queue), 0)

    async def test_all_credentials_unauthorized_falls_back(self):
        provider = FakeProvider("openrouter", [auth_failure(401), auth_failure(403)], slots=("FAKE_KEY_1", "FAKE_KEY_2"))
        response = await self.service([provider]).handle_chat("Explain quantum foam")
        self.assertTrue(response.is_fallback)
        self.assertEqual(response.reply, CLARIFICATION_REPLY)
        self.assertEqual(response.confidence, 0.2)
        self.assertEqual(len(response.errors), 2)
        self.assertEqual(len(provider.calls), 2)
        self.assertEqual(len(self.queue), 1)
        self.assertEqual(self.queue.items[0]["message"], "Explain quantum foam")
        self.assertEqual(len(self.queue.items[0]["errors"]), 2)
        stored = json.loads((self.tmpdir / "memory.json").read_text())["learned_responses"]
        self.assertTrue(stored[0]["is_fallback"])

    async def test_non_auth_failure_does_not_try_second_key(self):
        provider = FakeProvider("openrouter", [server_failure(503), "never"], slots=("FAKE_KEY_1", "FAKE_KEY_2"))
        response = await self.service([provider]).handle_chat("hello")
        self.assertTrue(response.is_fallback)
        self.assertEqual(len(provider.calls), 1)
        self.assertEqual(response.errors[0]["status"], 503)

    async def test_malformed_provider_body_falls_back(self):
        provider = ChatCompletionClient(
            "openrouter", "https://chat.invalid", ScriptedTransport([{"choices": ["oops"]}]), credential_slots=["FAKE_KEY_1"]
        )
        response = await self.service([provider]).handle_chat("hello")
        self.assertTrue(response.is_fallback)
        self.assertEqual(response.reply, CLARIFICATION_REPLY)
        self.assertEqual(response.errors[0]["kind"], "content")
        self.assertEqual(len(self.queue), 1)

    async def test_unexpected_provider_exception_does_not_sink_siblings(self):
        broken = FakeProvider("broken", [RuntimeError("socket exploded")])
        healthy = FakeProvider("healthy", ["Still here."], delay=0.01)
        with self.assertLogs("vevo.dispatcher", level="ERROR"):
            response = await self.service([broken, healthy]).handle_chat("status?")
        self.assertFalse(response.is_fallback)
        self.assertEqual(response.reply, "Still here.")
        self.assertEqual(response.sources, ["healthy"])
        self.assertEqual(response.errors[0]["source"], "broken")
        self.assertIn("RuntimeError", response.errors[0]["message"])
        self.assertEqual(len(self.memory), 1)

    async def test_leaking_reply_is_retried_then_sanitized(self):
        provider = FakeProvider("openrouter", ["I am an AI developed by OpenAI. Hi.", "Hi, I am Jarvis."])
        response = await self.service([provider]).handle_chat("who are you")
        self.assertEqual(response.reply, "Hi, I am Jarvis.")
        self.assertEqual(len(provider.calls), 2)
        self.assertIn("do not include any provider or vendor names", provider.calls[1][1])

    async def test_persistent_leakage_stops_at_configured_bound(self):
        provider = FakeProvider("openrouter", ["Built by Google. The sky is blue."])
        response = await self.service([provider], leakage_retries=2).handle_chat("sky colour")
        self.assertEqual(len(provider.calls), 2)
        self.assertNotIn("Google", response.reply)
        self.assertFalse(response.is_fallback)

    async def test_sources_follow_arrival_order(self):
        slow = FakeProvider("slow", ["Slow answer."], delay=0.05)
        fast = FakeProvider("fast", ["Fast answer."])
        response = await self.service([slow, fast]).handle_chat("race")
        self.assertEqual(response.sources, ["fast", "slow"])
        self.assertEqual(response.reply, "Fast answer. | Slow answer.")
        self.assertAlmostEqual(response.confidence, 0.9)

    async def test_arithmetic_shortcut_contributes(self):
        response = await self.service([]).handle_chat("2 + 2")
        self.assertEqual(response.reply, "Math result: 4")
        self.assertEqual(response.sources, ["mathCore"])
        self.assertAlmostEqual(response.confidence, 0.8)

    async def test_provider_without_credentials_is_skipped(self):
        provider = FakeProvider("xai", ["never"], slots=("UNSET_SLOT",))
        response = await self.service([provider]).handle_chat("hello")
        self.assertTrue(response.is_fallback)
        self.assertEqual(provider.calls, [])
        self.assertIn("xai skipped", response.reasoning_summary)

    async def test_to_dict_shape(self):
        provider = FakeProvider("openrouter", ["Fine."])
        payload = (await self.service([provider]).handle_chat("hi")).to_dict()
        self.assertEqual(
            set(payload),
            {"reply", "sources", "reasoning_summary", "confidence", "memory_update", "errors", "isFallback"},
        )


if __name__ == "__main__":
    unittest.main()
