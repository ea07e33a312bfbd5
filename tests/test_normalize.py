"""Tests for the canonical comparison form."""

import pytest

from signline.normalize import normalize


class TestNormalize:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Tai Seng", "taiseng"),
            ("TAI-SENG!!", "taiseng"),
            ("  H E L L O  ", "hello"),
            ("Thank You", "thankyou"),
            ("", ""),
            ("???", ""),
            ("café", "caf"),
        ],
    )
    def test_keeps_only_lowercase_ascii_letters(self, raw, expected):
        assert normalize(raw) == expected

    def test_idempotent(self):
        once = normalize("City Hall 2!")
        assert normalize(once) == once
