import re

from wordcrawler.crawler.parser import WordCountParser


PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>Cats</title>
  <style>body { color: red; }</style>
  <script>var hidden = "script words";</script>
</head>
<body>
  <!-- a comment nobody reads -->
  <h1>Cats, Dogs &amp; cats!</h1>
  <p>The cat sat.</p>
  <a href="/about">About</a>
  <a href="other.html">Other</a>
  <a href="https://elsewhere.test/x">Elsewhere</a>
  <a href="#top">Top</a>
  <a href="mailto:someone@site.test">Mail</a>
  <a href="/logo.png">Logo</a>
  <a href="/about">About again</a>
  <a href="">Empty</a>
</body>
</html>
"""


def test_words_are_normalized_and_markup_is_ignored():
    page = WordCountParser().parse("http://site.test/dir/index.html", PAGE)

    assert page.words == [
        "cats",
        "cats", "dogs", "cats",
        "the", "cat", "sat",
        "about", "other", "elsewhere", "top", "mail", "logo", "about", "again", "empty",
    ]
    assert "hidden" not in page.words
    assert "comment" not in page.words
    assert "html" not in page.words
    assert page.word_count == len(page.words)


def test_links_are_absolute_unique_and_crawlable():
    page = WordCountParser().parse("http://site.test/dir/index.html", PAGE)

    assert page.links == [
        "http://site.test/about",
        "http://site.test/dir/other.html",
        "https://elsewhere.test/x",
    ]


def test_excluded_word_patterns_match_the_raw_token():
    parser = WordCountParser([re.compile(r"the|a"), re.compile(r"\d+")])

    assert parser.tokenize("The cat and the 42 dogs a") == ["the", "cat", "and", "dogs"]


def test_tokens_that_are_only_punctuation_are_dropped():
    parser = WordCountParser()

    assert parser.tokenize("  -- Hello,   world!! ... ") == ["hello", "world"]


def test_file_pages_resolve_root_links_against_their_directory():
    parser = WordCountParser()
    base = "file:///tmp/site/index.html"

    assert parser.resolve_link(base, "/page.html") == "file:///tmp/site/page.html"
    assert parser.resolve_link(base, "sub/more.html") == "file:///tmp/site/sub/more.html"
    assert parser.resolve_link(base, "http://site.test/") == "http://site.test/"
