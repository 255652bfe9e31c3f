"""Tests for entrysim.text — normalization and tokenization."""
import pytest

from entrysim.stopwords import DEFAULT_STOPWORDS, build_stopwords
from entrysim.text import (
    RegexTokenizer,
    TokenizeError,
    WhitespaceTokenizer,
    normalize,
    strip_tags,
    tokenize,
)

SAMPLES = [
    "",
    "plain text",
    "Hello <b>World</b>!",
    "<p>First&nbsp;para</p>\n\n<p>Second   para.</p>",
    "  Leading and trailing  ",
    "Ünïcödé — dashes – and “quotes”",
    "a < b > c",
    "snake_case and CamelCase 42",
    "İstanbul",
]


class TestStripTags:
    def test_keeps_tag_body(self):
        assert strip_tags("<strong>x</strong>") == "x"

    def test_attributes_removed(self):
        assert strip_tags('<a href="https://x.com">link</a> text') == "link text"

    def test_no_tags(self):
        assert strip_tags("nothing here") == "nothing here"


class TestNormalize:
    def test_title_and_content_joined(self):
        assert normalize("Hello <b>World</b>!", "<p>It's  here.</p>") == "hello world its here"

    def test_lowercases(self):
        assert normalize("BREAKING News") == "breaking news"

    def test_collapses_whitespace(self):
        assert normalize("a\n\n b\t\tc") == "a b c"

    def test_strips_punctuation(self):
        assert normalize("Wait... what?!", "(really)") == "wait what really"

    def test_empty_input(self):
        assert normalize("", "") == ""

    def test_none_input(self):
        assert normalize(None, None) == ""

    def test_dotted_capital_i(self):
        assert normalize("İstanbul") == "istanbul"

    def test_only_markup(self):
        assert normalize("<br/><hr/>") == ""

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once


class TestTokenize:
    def test_splits_on_whitespace(self):
        assert tokenize("cat dog bird") == ["cat", "dog", "bird"]

    def test_drops_stopwords(self):
        assert tokenize("the cat and the dog") == ["cat", "dog"]

    def test_stopwords_case_insensitive(self):
        assert tokenize("The Cat AND Dog") == ["cat", "dog"]

    def test_order_and_repeats_preserved(self):
        assert tokenize("dog cat dog") == ["dog", "cat", "dog"]

    def test_empty(self):
        assert tokenize("") == []

    def test_custom_stopwords(self):
        stop = build_stopwords(["cat"])
        assert tokenize("cat dog", stopwords=stop) == ["dog"]
        assert "the" in stop

    def test_non_string_raises(self):
        with pytest.raises(TokenizeError):
            tokenize(None)

    def test_failing_tokenizer_wrapped(self):
        class Broken:
            def split(self, text):
                raise RuntimeError("bad input")

        with pytest.raises(TokenizeError, match="bad input"):
            tokenize("anything", tokenizer=Broken())

    def test_regex_tokenizer(self):
        assert tokenize("cat,dog;bird", tokenizer=RegexTokenizer()) == ["cat", "dog", "bird"]

    def test_whitespace_tokenizer_default(self):
        assert WhitespaceTokenizer().split("a  b") == ["a", "b"]

    def test_default_stopwords_nonempty(self):
        assert "the" in DEFAULT_STOPWORDS
        assert "cat" not in DEFAULT_STOPWORDS
