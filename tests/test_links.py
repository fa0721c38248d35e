"""
Unit tests for reference parsing.
"""

import pytest

from core.models.links import (
    Reference, ReferenceKind, parse_link, convert_list_to_links, extract_link_texts
)


class TestParseLink:
    """Test parsing single references"""

    def test_wiki_link(self):
        reference = parse_link("[[Alice]]")
        assert reference == Reference(kind=ReferenceKind.WIKI, target="Alice")

    def test_wiki_alias(self):
        reference = parse_link("[[People/Bob|Robert]]")
        assert reference.target == "People/Bob"
        assert reference.display_text == "Robert"

    def test_wiki_section_dropped(self):
        assert parse_link("[[Project#Goals]]").target == "Project"

    def test_markdown_link(self):
        """Test markdown links with URL-encoded targets"""
        reference = parse_link("[Design doc](Docs/Design%20Doc.md)")
        assert reference.kind == ReferenceKind.MARKDOWN
        assert reference.target == "Docs/Design Doc.md"
        assert reference.display_text == "Design doc"

    def test_markdown_uri(self):
        """Test markdown links to URIs are URI references"""
        reference = parse_link("[Site](https://example.com/page)")
        assert reference.kind == ReferenceKind.URI
        assert reference.target == "https://example.com/page"

    def test_bare_uri(self):
        reference = parse_link("https://example.com")
        assert reference == Reference(kind=ReferenceKind.URI, target="https://example.com")

    def test_bare_name_is_wiki(self):
        assert parse_link("Office") == Reference(kind=ReferenceKind.WIKI, target="Office")

    def test_yaml_nested_list(self):
        """Test unquoted [[x]] parsed by YAML as [['x']]"""
        assert parse_link([["Alice"]]).target == "Alice"

    @pytest.mark.parametrize("value", [None, "", "   ", {"a": 1}, True, ["a", "b"]])
    def test_unparsable(self, value):
        assert parse_link(value) is None


class TestToText:
    """Test rendering references"""

    @pytest.mark.parametrize("text", [
        "[[Alice]]",
        "[[Bob|Robert]]",
        "[Doc](Doc.md)",
        "https://example.com",
        "[Site](https://example.com)",
    ])
    def test_render_matches_input(self, text):
        assert parse_link(text).to_text() == text


class TestConvertListToLinks:
    """Test parsing reference lists"""

    def test_mixed_list(self):
        references = convert_list_to_links(["[[A]]", None, "", "B", [["C"]]])
        assert [r.target for r in references] == ["A", "B", "C"]

    def test_scalar(self):
        assert [r.target for r in convert_list_to_links("[[Solo]]")] == ["Solo"]

    def test_single_flow_list(self):
        """Test `key: [[A]]` which YAML reads as [['A']]"""
        assert [r.target for r in convert_list_to_links([["A"]])] == ["A"]

    def test_none(self):
        assert convert_list_to_links(None) == []


class TestExtractLinkTexts:
    """Test finding links in note bodies"""

    def test_body_links(self):
        text = "Met [[Alice|Al]] about [[Project#Plan]], see [notes](Notes/Meeting.md) and [web](https://x.org)."
        assert extract_link_texts(text) == ["Alice", "Project", "Notes/Meeting.md"]

    def test_no_links(self):
        assert extract_link_texts("plain text") == []
