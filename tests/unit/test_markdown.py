from ragruntime.infrastructure.text.markdown import extract_markdown_text, strip_markdown


def test_strip_markdown_keeps_readable_text() -> None:
    source = (
        "# Annual report\n\n"
        "Cash was **strong** and _stable_. See [the notes](https://example.org/notes).\n\n"
        "![chart](chart.png)\n"
        "```python\nprint('hidden')\n```\n"
        "Uses `inline code` and <b>html</b>."
    )

    text = strip_markdown(source)

    assert text.startswith("Annual report\n\nCash was strong and stable. See the notes.")
    assert "hidden" not in text
    assert "chart" not in text
    assert "inline code" not in text
    assert "<b>" not in text
    assert text.endswith("Uses and html.")


def test_extract_markdown_text_drops_structure_markers() -> None:
    source = (
        "---\ntitle: Report\n---\n"
        "> Quoted line\n"
        "- first item\n"
        "2. second item\n"
        "***\n"
        "~~old~~ new &amp; [ref][1]"
    )

    text = extract_markdown_text(source)

    assert "title" not in text
    assert text.splitlines() == ["Quoted line", "first item", "second item", "", "old new ref"]
