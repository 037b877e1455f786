import base64
import unittest
from unittest import mock

from google.genai import types

from celebrate.assistant import GeminiAssistant
from celebrate.models import gemini
from celebrate.models.gemini import (
    GeminiInvalidResponseException,
    ModerationOutput,
    parse_data_uri,
)

PNG_URI = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii")


def fake_response(parsed=None, text=None, block_reason=None, finish_reason=None):
    response = mock.MagicMock()
    response.parsed = parsed
    response.text = text
    response.prompt_feedback = (
        mock.MagicMock(block_reason=block_reason) if block_reason else None
    )
    response.candidates = (
        [mock.MagicMock(finish_reason=finish_reason)] if finish_reason else []
    )
    return response


class ParseDataUriTests(unittest.TestCase):
    def test_splits_mime_and_bytes(self):
        self.assertEqual(parse_data_uri(PNG_URI), ("image/png", b"png-bytes"))

    def test_rejects_plain_url(self):
        with self.assertRaises(ValueError):
            parse_data_uri("https://example.test/a.png")

    def test_rejects_bad_base64(self):
        with self.assertRaises(ValueError):
            parse_data_uri("data:image/png;base64,@@@")


@mock.patch("celebrate.models.gemini.genai.Client")
class ModerateWishTests(unittest.TestCase):
    def test_returns_parsed_verdict(self, client_cls):
        verdict = ModerationOutput(isAppropriate=True)
        client_cls.return_value.models.generate_content.return_value = fake_response(
            parsed=verdict
        )

        self.assertEqual(gemini.moderate_wish("Happy birthday!", api_key="k"), verdict)
        client_cls.assert_called_once_with(api_key="k")
        kwargs = client_cls.return_value.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], gemini.DEFAULT_MODEL)
        self.assertIn("Happy birthday!", kwargs["contents"])

    def test_safety_block_counts_as_inappropriate(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = fake_response(
            block_reason="SAFETY"
        )
        verdict = gemini.moderate_wish("something nasty", api_key="k")
        self.assertFalse(verdict.isAppropriate)
        self.assertEqual(verdict.reason, gemini.SAFETY_BLOCKED_REASON)

    def test_safety_finish_reason_counts_as_inappropriate(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = fake_response(
            finish_reason=types.FinishReason.SAFETY
        )
        self.assertFalse(gemini.moderate_wish("x", api_key="k").isAppropriate)

    def test_empty_response_raises(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = fake_response()
        with self.assertRaises(GeminiInvalidResponseException):
            gemini.moderate_wish("x", api_key="k")


@mock.patch("celebrate.models.gemini.genai.Client")
class ImageHintTests(unittest.TestCase):
    def test_keeps_first_two_words(self, client_cls):
        client_cls.return_value.models.generate_content.return_value = fake_response(
            text='"Birthday cake with candles"\n'
        )
        self.assertEqual(
            gemini.generate_image_hint(PNG_URI, api_key="k"), "Birthday cake"
        )

    def test_hint_request_disables_thinking(self, client_cls):
        generate = client_cls.return_value.models.generate_content
        generate.return_value = fake_response(text="party hat")
        gemini.generate_image_hint(PNG_URI, api_key="k")

        config = generate.call_args.kwargs["config"]
        self.assertEqual(config.thinking_config.thinking_budget, 0)
        self.assertEqual(config.max_output_tokens, gemini.HINT_MAX_OUTPUT_TOKENS)

    def test_assistant_falls_back_to_generic_hint(self, client_cls):
        client_cls.return_value.models.generate_content.side_effect = RuntimeError(
            "quota"
        )
        assistant = GeminiAssistant(api_key="k")
        self.assertEqual(assistant.caption(PNG_URI), "image")

    def test_assistant_moderation_errors_propagate(self, client_cls):
        client_cls.return_value.models.generate_content.side_effect = RuntimeError(
            "quota"
        )
        with self.assertRaises(RuntimeError):
            GeminiAssistant(api_key="k").moderate("hi")


if __name__ == "__main__":
    unittest.main()
