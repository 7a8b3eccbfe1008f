"""Tests for the markup → rich-text document compiler."""

from sheetport.core.rich_text import compile_markup, parse_inline


def _types(nodes):
    return [n["nodeType"] for n in nodes]


class TestCompileMarkup:
    def test_empty_input_gives_single_empty_paragraph(self):
        doc = compile_markup("")
        assert doc["nodeType"] == "document"
        assert _types(doc["content"]) == ["paragraph"]
        assert doc["content"][0]["content"][0]["value"] == ""

    def test_blank_lines_only(self):
        doc = compile_markup("\n  \n")
        assert _types(doc["content"]) == ["paragraph"]

    def test_headings(self):
        doc = compile_markup("# One\n### Three\n###### Six")
        assert _types(doc["content"]) == ["heading-1", "heading-3", "heading-6"]
        assert doc["content"][1]["content"][0]["value"] == "Three"

    def test_seven_hashes_is_a_paragraph(self):
        doc = compile_markup("####### Too deep")
        assert _types(doc["content"]) == ["paragraph"]

    def test_consecutive_items_grouped_into_one_list(self):
        doc = compile_markup("1. first\n2. second\n3. third\nafter")
        assert _types(doc["content"]) == ["ordered-list", "paragraph"]
        items = doc["content"][0]["content"]
        assert len(items) == 3
        assert items[1]["nodeType"] == "list-item"
        assert items[1]["content"][0]["content"][0]["value"] == "second"

    def test_unordered_list_markers(self):
        doc = compile_markup("- a\n* b")
        assert _types(doc["content"]) == ["unordered-list"]
        assert len(doc["content"][0]["content"]) == 2

    def test_blank_line_splits_lists(self):
        doc = compile_markup("- a\n\n- b")
        assert _types(doc["content"]) == ["unordered-list", "unordered-list"]

    def test_blockquote(self):
        doc = compile_markup("> quoted text")
        quote = doc["content"][0]
        assert quote["nodeType"] == "blockquote"
        assert quote["content"][0]["nodeType"] == "paragraph"
        assert quote["content"][0]["content"][0]["value"] == "quoted text"

    def test_ordered_then_unordered_list(self):
        doc = compile_markup("1. a\n2. b\n\n- c")
        assert _types(doc["content"]) == ["ordered-list", "unordered-list"]
        assert len(doc["content"][0]["content"]) == 2
        assert len(doc["content"][1]["content"]) == 1

    def test_horizontal_rule(self):
        doc = compile_markup("above\n---\nbelow")
        assert _types(doc["content"]) == ["paragraph", "hr", "paragraph"]
        assert doc["content"][1]["content"] == []

    def test_every_container_has_children(self):
        doc = compile_markup("# H\n\n- x\n> q\ntext")

        def check(node):
            if node["nodeType"] in ("text", "hr"):
                return
            assert node["content"], node["nodeType"]
            for child in node["content"]:
                check(child)

        check(doc)


class TestParseInline:
    def test_plain_text(self):
        nodes = parse_inline("just words")
        assert len(nodes) == 1
        assert nodes[0]["value"] == "just words"
        assert nodes[0]["marks"] == []

    def test_bold_and_italic(self):
        nodes = parse_inline("a **b** c *d*")
        assert [n["value"] for n in nodes] == ["a ", "b", " c ", "d"]
        assert nodes[1]["marks"] == [{"type": "bold"}]
        assert nodes[3]["marks"] == [{"type": "italic"}]

    def test_link(self):
        nodes = parse_inline("see [docs](https://example.com) now")
        assert _types(nodes) == ["text", "hyperlink", "text"]
        assert nodes[1]["data"] == {"uri": "https://example.com"}
        assert nodes[1]["content"][0]["value"] == "docs"

    def test_leftmost_match_wins(self):
        nodes = parse_inline("[*x*](u) **y**")
        assert nodes[0]["nodeType"] == "hyperlink"
        assert nodes[0]["content"][0]["value"] == "*x*"
        assert nodes[-1]["marks"] == [{"type": "bold"}]

    def test_empty_string(self):
        nodes = parse_inline("")
        assert len(nodes) == 1
        assert nodes[0]["value"] == ""
