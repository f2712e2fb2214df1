from recall.urls import extract_domain, extract_urls_from_text, is_valid_url


def test_extracts_full_and_bare_urls():
    text = "see https://github.com/user/repo, and docs.python.org today"
    assert extract_urls_from_text(text) == [
        "https://docs.python.org",
        "https://github.com/user/repo",
    ]


def test_rejects_recognition_noise():
    assert not is_valid_url("https://com.apple.Safari")
    assert not is_valid_url("https://ab.example.com")
    assert not is_valid_url("https://sereen.dev/x")
    assert not is_valid_url("not a url")
    assert is_valid_url("https://x.com")


def test_extract_domain_strips_www_and_lowercases():
    assert extract_domain("https://www.Example.com/path") == "example.com"
    assert extract_domain("https://news.ycombinator.com") == "news.ycombinator.com"
    assert extract_domain("nonsense") is None


def test_no_urls_in_plain_text():
    assert extract_urls_from_text("nothing to see here") == []
