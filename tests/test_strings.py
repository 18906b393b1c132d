"""Tests for comment stripping and line collapsing."""

from __future__ import annotations

from ljp.strings import collapse_lines, strip_comments


class TestStripComments:
    def test_line_comment_removed(self) -> None:
        assert strip_comments("local a = 1 -- c\nlocal b = 2") == "local a = 1 \nlocal b = 2"

    def test_multiline_comment_keeps_line_breaks(self) -> None:
        assert strip_comments("a = 1 --[[x\ny]] b = 2") == "a = 1 \n b = 2"

    def test_inline_long_comment_becomes_space(self) -> None:
        assert strip_comments("a =--[[x]]1") == "a = 1"

    def test_leading_comment_lines(self) -> None:
        assert strip_comments("-- header\n-- more\nx = 1\n") == "\n\nx = 1\n"

    def test_string_contents_kept(self) -> None:
        source = 's = "-- not a comment" t = [[--[[ nor this]]'
        assert strip_comments(source) == source

    def test_annotations_kept(self) -> None:
        source = "local --[[@comp_time_enum]] E = { A = 1 }\nlocal --[[@used]] x = 1\n"
        assert strip_comments(source) == source

    def test_shebang_kept(self) -> None:
        assert strip_comments("#!/bin/lua\nx = 1 -- c") == "#!/bin/lua\nx = 1 "

    def test_preserves_line_count(self) -> None:
        source = "--[==[\nheader\n]==]\nlocal a = 1 -- one\n--[[ two\n]] local b = 2\n"
        assert strip_comments(source).count("\n") == source.count("\n")


class TestCollapseLines:
    def test_newlines_become_spaces(self) -> None:
        assert collapse_lines("a = 1\nb = 2\n") == "a = 1 b = 2 "

    def test_crlf(self) -> None:
        assert collapse_lines("a = 1\r\nb = 2") == "a = 1 b = 2"

    def test_long_string_newlines_kept(self) -> None:
        assert collapse_lines("s = [[a\nb]]\nt = 1") == "s = [[a\nb]] t = 1"

    def test_line_comment_stays_terminated(self) -> None:
        assert collapse_lines("a = 1 -- c\nb = 2") == "a = 1 -- c\n b = 2"

    def test_long_comment_flattened(self) -> None:
        assert collapse_lines("a = 1 --[[x\ny]] b = 2") == "a = 1 --[[x y]] b = 2"

    def test_empty(self) -> None:
        assert collapse_lines("") == ""
