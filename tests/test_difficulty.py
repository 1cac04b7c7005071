"""Tests for gategen.utils.difficulty: parse_difficulty."""

import pytest

from gategen.state import DIFFICULTY_TIERS
from gategen.utils.difficulty import DEFAULT_TIER, parse_difficulty


class TestParseDifficulty:
    def test_easy_tag_with_newline(self):
        assert parse_difficulty("[EASY]\nToo easy.") == ("EASY", "Too easy.")

    @pytest.mark.parametrize("tag, tier", [
        ("[EASY]", "EASY"),
        ("[MEDIUM]", "MEDIUM"),
        ("[HARD]", "HARD"),
        ("[VERY_HARD]", "VERY_HARD"),
        ("[IMPOSSIBLE]", "IMPOSSIBLE"),
    ])
    def test_every_tag_recognized(self, tag, tier):
        assert parse_difficulty(f"{tag} rest") == (tier, "rest")

    def test_complex_maps_to_hard(self):
        assert parse_difficulty("[COMPLEX] Needs threads.") == ("HARD", "Needs threads.")

    def test_crlf_counts_as_one_separator(self):
        assert parse_difficulty("[HARD]\r\nline one") == ("HARD", "line one")

    def test_only_one_separator_stripped(self):
        tier, remainder = parse_difficulty("[EASY]\n\nSecond paragraph.")
        assert tier == "EASY"
        assert remainder == "\nSecond paragraph."

    def test_tag_without_separator(self):
        assert parse_difficulty("[EASY]done") == ("EASY", "done")

    def test_tag_alone(self):
        assert parse_difficulty("[IMPOSSIBLE]") == ("IMPOSSIBLE", "")

    def test_surrounding_whitespace_trimmed_first(self):
        assert parse_difficulty("  \n[EASY] ok  \n") == ("EASY", "ok")

    def test_no_tag_defaults_to_medium(self):
        assert parse_difficulty("Just some analysis.") == (DEFAULT_TIER, "Just some analysis.")
        assert DEFAULT_TIER == "MEDIUM"

    def test_tag_not_at_start_is_ignored(self):
        text = "I think this is [EASY]."
        assert parse_difficulty(text) == ("MEDIUM", text)

    def test_unknown_bracket_token_left_in_place(self):
        assert parse_difficulty("[TRIVIAL] hello") == ("MEDIUM", "[TRIVIAL] hello")

    def test_tags_are_case_sensitive(self):
        assert parse_difficulty("[easy] hi") == ("MEDIUM", "[easy] hi")

    def test_empty_string(self):
        assert parse_difficulty("") == ("MEDIUM", "")

    def test_non_string_input(self):
        assert parse_difficulty(None) == ("MEDIUM", "")

    @pytest.mark.parametrize("text", ["", "[", "]]", "[EASY", "\t", "[MEDIUM]\n", "random [HARD] text"])
    def test_always_returns_a_known_tier(self, text):
        tier, remainder = parse_difficulty(text)
        assert tier in DIFFICULTY_TIERS
        assert isinstance(remainder, str)
