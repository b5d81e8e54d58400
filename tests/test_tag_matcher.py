import pytest

from relaycord.datatypes.proxy_datatypes import ProxyTag
from relaycord.proxy.tag_matcher import match, matches


@pytest.mark.parametrize(
    "prefix,suffix,content",
    [
        ("A:", "", "hello"),
        ("", "-a", "hello"),
        ("[", "]", "hello world"),
        ("{{", "}}", "x"),
    ],
)
def test_wrapped_content_matches_first_tag(prefix, suffix, content):
    found = match(f"{prefix}{content}{suffix}", [ProxyTag(prefix, suffix)])
    assert found is not None
    assert found.tag_index == 0
    assert found.content == content.strip()


def test_content_is_trimmed():
    found = match("A:   hello  ", [ProxyTag("A:", "")])
    assert found.content == "hello"


def test_empty_content_never_matches():
    assert match("A:", [ProxyTag("A:", "")]) is None
    assert match("[]", [ProxyTag("[", "]")]) is None


def test_both_empty_tag_never_matches():
    assert match("anything", [ProxyTag("", "")]) is None
    assert matches("", ProxyTag("", "")) is False


def test_first_match_wins_over_longer_match():
    tags = [ProxyTag("a", ""), ProxyTag("ab:", "")]
    found = match("ab:hi", tags)
    assert found.tag_index == 0
    assert found.content == "b:hi"


def test_later_tag_used_when_earlier_does_not_match():
    tags = [ProxyTag("B:", ""), ProxyTag("A:", "")]
    found = match("A:hi", tags)
    assert found.tag_index == 1


def test_case_insensitive_by_default():
    assert match("a:hello", [ProxyTag("A:", "")]).content == "hello"
    assert match("HELLO-X", [ProxyTag("", "-x")]).content == "HELLO"


def test_case_sensitive_only_affects_comparison():
    assert match("a:hello", [ProxyTag("A:", "")], case_sensitive=True) is None
    found = match("A:Hello", [ProxyTag("A:", "")], case_sensitive=True)
    assert found.content == "Hello"


def test_prefix_and_suffix_overlap_needs_remaining_content():
    # "ab" as both prefix and suffix of "aba": 3 - 2 - 2 < 0
    assert match("aba", [ProxyTag("ab", "ba")]) is None


def test_no_tags_no_match():
    assert match("hello", []) is None
