#!/usr/bin/env python3
"""
Tests for snippet extraction and highlighting.
"""

from counsel_search.snippet import best_match_position, highlight_matches, make_snippet


class TestBestMatchPosition:

    def test_no_match_is_zero(self):
        assert best_match_position("nothing relevant here", "database") == 0

    def test_prefers_cluster_of_query_words(self):
        """The offset near the most distinct query words wins."""
        content = "cache " + "x" * 200 + " cache invalidation strategy"
        position = best_match_position(content, "cache invalidation")
        assert position == content.index("cache invalidation")

    def test_earliest_offset_wins_ties(self):
        content = "redis " + "x" * 200 + " redis"
        assert best_match_position(content, "redis") == 0


class TestMakeSnippet:

    def test_short_content_returned_whole(self):
        assert make_snippet("Refactor the login module", "login") == "Refactor the login module"

    def test_empty_content(self):
        assert make_snippet("", "anything") == ""

    def test_window_centred_on_late_match(self):
        """A match at offset 1500 of 2000 characters gives a prefixed window around it."""
        content = "a" * 1500 + "database" + "b" * 492
        assert len(content) == 2000

        snippet = make_snippet(content, "database", max_length=200)
        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert "database" in snippet
        body = snippet[3:-3]
        assert len(body) == 200
        # Window starts max_length // 2 before the match
        assert content.index(body) == 1400

    def test_no_match_starts_at_beginning(self):
        content = "z" * 500
        snippet = make_snippet(content, "missing", max_length=100)
        assert not snippet.startswith("...")
        assert snippet.endswith("...")
        assert len(snippet) == 103


class TestHighlight:

    def test_case_insensitive(self):
        assert highlight_matches("Auth and AUTH", ["auth"]) == "**Auth** and **AUTH**"

    def test_longest_term_first(self):
        assert highlight_matches("authentication", ["auth", "authentication"]) == "**authentication**"

    def test_no_terms(self):
        assert highlight_matches("text", []) == "text"

    def test_special_characters_escaped(self):
        assert highlight_matches("use c++ here", ["c++"]) == "use **c++** here"
