"""Unit tests for recording target URL validation and normalization."""

import unittest

from scenably.errors import InvalidUrl
from scenably.recorder.urls import collapse_duplicated_protocol, normalize_target_url


class RecordingUrlTests(unittest.TestCase):
    """Validate URL rejection rules and duplicated-protocol collapsing."""

    def test_duplicated_protocol_collapses(self) -> None:
        self.assertEqual(normalize_target_url("https:// https://example.com"), "https://example.com")
        self.assertEqual(collapse_duplicated_protocol("https://https://example.com/a"), "https://example.com/a")
        self.assertEqual(collapse_duplicated_protocol("https://example.com"), "https://example.com")

    def test_surrounding_whitespace_is_trimmed(self) -> None:
        self.assertEqual(normalize_target_url("  http://localhost:3000/login \n"), "http://localhost:3000/login")

    def test_rejects_empty_and_malformed_urls(self) -> None:
        for raw in ("", "   ", None, "example.com", "ftp://example.com", "https://", "https://exa mple.com"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidUrl):
                    normalize_target_url(raw)

    def test_rejects_invalid_port(self) -> None:
        with self.assertRaises(InvalidUrl):
            normalize_target_url("http://localhost:99999/")

    def test_invalid_url_carries_validation_taxonomy(self) -> None:
        with self.assertRaises(InvalidUrl) as ctx:
            normalize_target_url("")
        self.assertEqual(ctx.exception.error_class, "validation")
        self.assertEqual(ctx.exception.error_code, "INVALID_URL")


if __name__ == "__main__":
    unittest.main()
