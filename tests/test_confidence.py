import unittest

from vevo.confidence import (
    CLARIFICATION_REPLY,
    FALLBACK_CONFIDENCE,
    ConfidenceEngine,
    confidence_for,
    is_refusal,
)


class ConfidenceCurveTests(unittest.TestCase):
    def test_base_and_second_source(self):
        self.assertAlmostEqual(confidence_for(1), 0.8)
        self.assertAlmostEqual(confidence_for(2), 0.9)

    def test_strictly_increasing_and_bounded(self):
        values = [confidence_for(n) for n in range(1, 12)]
        for lower, higher in zip(values, values[1:]):
            self.assertLess(lower, higher)
        for value in values:
            self.assertLessEqual(value, 1.0)
            self.assertGreaterEqual(value, 0.0)


class ConfidenceEngineTests(unittest.TestCase):
    def setUp(self):
        self.engine = ConfidenceEngine()

    def test_empty_replies_fall_back(self):
        synthesis = self.engine.evaluate([], [])
        self.assertTrue(synthesis.is_fallback)
        self.assertEqual(synthesis.reply, CLARIFICATION_REPLY)
        self.assertEqual(synthesis.confidence, FALLBACK_CONFIDENCE)

    def test_refusal_falls_back(self):
        synthesis = self.engine.evaluate(["I can't help with that."], ["openrouter"])
        self.assertTrue(synthesis.is_fallback)
        self.assertEqual(synthesis.confidence, 0.2)
        self.assertEqual(synthesis.sources, ["openrouter"])

    def test_replies_are_joined_in_order(self):
        synthesis = self.engine.evaluate(["Math result: 4", "Four."], ["mathCore", "openrouter"], arithmetic_used=True)
        self.assertFalse(synthesis.is_fallback)
        self.assertEqual(synthesis.reply, "Math result: 4 | Four.")
        self.assertAlmostEqual(synthesis.confidence, 0.9)
        self.assertIn("Synthesized from: mathCore, openrouter", synthesis.trace)
        self.assertIn("Used mathCore for computation", synthesis.trace)

    def test_empty_strings_do_not_count(self):
        synthesis = self.engine.evaluate(["", "Answer"], ["openrouter"])
        self.assertEqual(synthesis.reply, "Answer")
        self.assertAlmostEqual(synthesis.confidence, 0.8)

    def test_is_refusal(self):
        self.assertTrue(is_refusal("As a language AI model I cannot"))
        self.assertTrue(is_refusal("Honestly, I don't know."))
        self.assertFalse(is_refusal("The capital of France is Paris."))


if __name__ == "__main__":
    unittest.main()
