"""Unit tests for selector synthesis (in-memory count backend, no browser)."""

from __future__ import annotations

from webflow.recorder.selectors import (
    ElementSnapshot,
    PathSegment,
    SelectorSynthesizer,
    css_escape,
    is_volatile_name,
    path_selector,
)


class CountingQuery:
    """Answers ``count`` from a fixed table; unknown selectors match nothing."""

    def __init__(self, counts: dict[str, object] | None = None):
        self.counts = counts or {}
        self.asked: list[str] = []

    async def count(self, selector: str) -> int:
        self.asked.append(selector)
        value = self.counts.get(selector, 0)
        if isinstance(value, Exception):
            raise value
        return value


def make_button(
    el_id="",
    name=None,
    data=None,
    classes=None,
    path=None,
) -> ElementSnapshot:
    attributes = []
    if el_id:
        attributes.append(("id", el_id))
    if name:
        attributes.append(("name", name))
    for key, value in (data or {}).items():
        attributes.append((key, value))
    return ElementSnapshot(
        tag="button",
        id=el_id,
        attributes=attributes,
        classes=list(classes or []),
        inner_text="Submit",
        path=path
        or [
            PathSegment(tag="button", index=2, same_tag_siblings=True),
            PathSegment(tag="form", index=1),
            PathSegment(tag="body", index=2),
            PathSegment(tag="html", index=1),
        ],
    )


class TestSynthesize:
    async def test_unique_id_wins(self):
        query = CountingQuery({"#submit-btn": 1})
        selector = await SelectorSynthesizer(query).synthesize(make_button(el_id="submit-btn"))
        assert selector == "#submit-btn"
        assert query.asked == ["#submit-btn"]

    async def test_duplicate_id_falls_through_to_name(self):
        query = CountingQuery({"#dup": 2, 'button[name="go"]': 1})
        selector = await SelectorSynthesizer(query).synthesize(make_button(el_id="dup", name="go"))
        assert selector == 'button[name="go"]'

    async def test_first_data_attribute_used(self):
        query = CountingQuery({'[data-testid="save"]': 1})
        el = make_button(data={"data-testid": "save", "data-track": "x"})
        assert await SelectorSynthesizer(query).synthesize(el) == '[data-testid="save"]'

    async def test_class_selector_skips_volatile_classes(self):
        query = CountingQuery({".btn.primary": 1})
        el = make_button(classes=["btn", "random-x9f", "css_1a2b", "primary"])
        assert await SelectorSynthesizer(query).synthesize(el) == ".btn.primary"

    async def test_falls_back_to_structural_path(self):
        query = CountingQuery({".btn": 3})
        el = make_button(classes=["btn"])
        selector = await SelectorSynthesizer(query).synthesize(el)
        assert selector == "html > body > form > button:nth-child(2)"

    async def test_every_candidate_unique_or_path(self):
        # Each returned non-path candidate must have matched exactly once.
        query = CountingQuery({"#a": 0, 'button[name="n"]': 5, '[data-x="1"]': 1})
        el = make_button(el_id="a", name="n", data={"data-x": "1"})
        selector = await SelectorSynthesizer(query).synthesize(el)
        assert selector == '[data-x="1"]'
        assert query.counts[selector] == 1

    async def test_count_error_treated_as_not_unique(self):
        query = CountingQuery({"#weird": ValueError("bad selector"), 'button[name="ok"]': 1})
        el = make_button(el_id="weird", name="ok")
        assert await SelectorSynthesizer(query).synthesize(el) == 'button[name="ok"]'

    async def test_fallback_is_never_empty(self):
        query = CountingQuery()
        el = ElementSnapshot(tag="span")
        selector = await SelectorSynthesizer(query).synthesize(el)
        assert selector == "span"


class TestPathSelector:
    def test_stops_at_ancestor_with_id(self):
        el = make_button(
            path=[
                PathSegment(tag="button", index=1),
                PathSegment(tag="div", id="toolbar", index=3),
                PathSegment(tag="body", index=2),
                PathSegment(tag="html", index=1),
            ]
        )
        assert path_selector(el) == "div#toolbar > button"

    def test_nth_child_only_with_same_tag_siblings(self):
        el = ElementSnapshot(
            tag="li",
            path=[
                PathSegment(tag="li", index=3, same_tag_siblings=True),
                PathSegment(tag="ul", index=2, same_tag_siblings=False),
                PathSegment(tag="html", index=1),
            ],
        )
        assert path_selector(el) == "html > ul > li:nth-child(3)"

    def test_element_own_id_does_not_cut_path(self):
        el = ElementSnapshot(
            tag="a",
            id="dup",
            path=[PathSegment(tag="a", id="dup", index=1), PathSegment(tag="html", index=1)],
        )
        assert path_selector(el) == "html > a"


class TestEscaping:
    def test_leading_digit_escaped(self):
        assert css_escape("1abc") == "\\31 abc"

    def test_special_characters_escaped(self):
        assert css_escape("a.b:c") == "a\\.b\\:c"

    def test_plain_identifier_unchanged(self):
        assert css_escape("submit-btn") == "submit-btn"

    async def test_id_with_special_characters(self):
        query = CountingQuery({"#user\\.name": 1})
        el = make_button(el_id="user.name")
        assert await SelectorSynthesizer(query).synthesize(el) == "#user\\.name"

    def test_attribute_value_quotes_escaped(self):
        from webflow.recorder.selectors import quote_attr

        assert quote_attr('say "hi"') == '"say \\"hi\\""'


class TestVolatileNames:
    def test_random_prefix(self):
        assert is_volatile_name("random-abc")

    def test_underscore(self):
        assert is_volatile_name("Button_root__x1")

    def test_stable(self):
        assert not is_volatile_name("btn-primary")


class TestSnapshotFromDict:
    def test_parses_page_payload(self):
        el = ElementSnapshot.from_dict(
            {
                "tag": "INPUT",
                "id": "email",
                "attributes": [["id", "email"], ["type", "email"]],
                "classes": ["field"],
                "innerText": "",
                "path": [{"tag": "INPUT", "id": "email", "index": 1, "sameTagSiblings": False}],
            }
        )
        assert el.tag == "input"
        assert el.get_attribute("type") == "email"
        assert el.get_attribute("missing") is None
        assert el.path[0].tag == "input"
