"""Tests for persona scrubbing and the leakage retry loop."""
import unittest

from vevo.sanitizer import (
    REDACTED,
    STRICT_INSTRUCTION,
    generate_without_leakage,
    has_leakage,
    scrub,
)


SAMPLES = [
    "",
    "Paris is the capital of France.",
    "I am an AI developed by OpenAI. Paris is the capital.",
    "As a language model, I think so. Here is the answer.",
    "Powered by OpenAI and Google AI via openrouter.ai",
    "token sk-abcdefghijklmnopqrstuvwxyz123 leaked",
    "url?key=ABCDEFGHIJKLMNOPQRSTU&x=1",
    "OpOpenAIenAI",
    "Google Google AI AI",
    "[object Object] and   spaced    text",
    "  As an AI I cannot. But also xAI and HuggingFace.  ",
]


class ScrubTests(unittest.TestCase):
    def test_removes_self_identification(self):
        self.assertEqual(scrub("I am an AI developed by OpenAI. Paris is the capital."), "Paris is the capital.")

    def test_removes_vendor_names(self):
        cleaned = scrub("Answer courtesy of OpenAI and HuggingFace")
        self.assertNotIn("OpenAI", cleaned)
        self.assertNotIn("HuggingFace", cleaned)
        self.assertEqual(cleaned, "Answer courtesy of  and")

    def test_vendor_names_inside_words_survive(self):
        self.assertEqual(scrub("maximum taxation"), "maximum taxation")

    def test_redacts_secret_like_substrings(self):
        self.assertEqual(scrub("my key is sk-abcdefghijklmnop1234"), f"my key is {REDACTED}")
        self.assertEqual(scrub("sk-short"), "sk-short")

    def test_non_strings_are_serialized(self):
        self.assertEqual(scrub({"a": 1}), '{"a": 1}')
        self.assertEqual(scrub(42), "42")
        self.assertEqual(scrub("[object Object]"), "[object]")

    def test_interior_whitespace_is_untouched(self):
        code = 'def f():\n    return "a    b"'
        self.assertEqual(scrub(code), code)

    def test_none_passes_through(self):
        self.assertIsNone(scrub(None))

    def test_idempotent(self):
        for sample in SAMPLES:
            with self.subTest(sample=sample):
                once = scrub(sample)
                self.assertEqual(scrub(once), once)

    def test_has_leakage(self):
        self.assertTrue(has_leakage("Built by OpenAI"))
        self.assertTrue(has_leakage("I am an AI assistant"))
        self.assertFalse(has_leakage("I am Jarvis"))
        self.assertFalse(has_leakage(None))


class LeakageRetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_clean_reply_returns_after_one_attempt(self):
        prompts = []

        async def generate(prompt):
            prompts.append(prompt)
            return "Hello, I am Jarvis."

        outcome = await generate_without_leakage(generate, "hi")
        self.assertTrue(outcome.clean)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.content, "Hello, I am Jarvis.")
        self.assertEqual(prompts, ["hi"])

    async def test_retry_adds_strict_instruction(self):
        replies = iter(["I was trained by OpenAI.", "Hello there."])
        prompts = []

        async def generate(prompt):
            prompts.append(prompt)
            return next(replies)

        outcome = await generate_without_leakage(generate, "hi", persona="Jarvis")
        self.assertTrue(outcome.clean)
        self.assertEqual(outcome.attempts, 2)
        self.assertEqual(outcome.content, "Hello there.")
        self.assertTrue(prompts[1].startswith(STRICT_INSTRUCTION.format(persona="Jarvis")))
        self.assertTrue(prompts[1].endswith("hi"))

    async def test_always_leaking_input_stops_at_bound(self):
        calls = []

        async def generate(prompt):
            calls.append(prompt)
            return "Google says: the answer is 4."

        for bound in (1, 2, 3, 5):
            calls.clear()
            outcome = await generate_without_leakage(generate, "2+2?", max_attempts=bound)
            self.assertFalse(outcome.clean)
            self.assertEqual(outcome.attempts, bound)
            self.assertEqual(len(calls), bound)
            self.assertEqual(outcome.content, "says: the answer is 4.")
            # The instruction is only prepended once.
            self.assertEqual(calls[-1].count("Please reply strictly"), 1 if bound > 1 else 0)

    async def test_bound_below_one_still_makes_one_attempt(self):
        async def generate(prompt):
            return "OpenAI"

        outcome = await generate_without_leakage(generate, "x", max_attempts=0)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.content, "")


if __name__ == "__main__":
    unittest.main()
