from recall.text_cleaner import TextCleaner, merge_texts


def test_clean_drops_short_lines_and_collapses_blank_runs():
    cleaner = TextCleaner()
    raw = "ab\nHello world\n\n\n\nfoo bar"
    assert cleaner.clean(raw) == "Hello world\n\nfoo bar"


def test_clean_removes_artifacts():
    cleaner = TextCleaner()
    assert cleaner.clean("Some text here|||\nMore text____") == "Some text here\nMore text"
    assert cleaner.clean("Loading� page....") == "Loading page"


def test_minimum_content_counts_words_of_three_or_more_characters():
    cleaner = TextCleaner()
    assert cleaner.has_minimum_content("one two three four five")
    assert not cleaner.has_minimum_content("a bb ccc dddd eeee")
    assert not cleaner.has_minimum_content("")


def test_minimum_content_needs_five_qualifying_words():
    cleaner = TextCleaner()
    # Only ccc, dddd, eeeee and ffffff qualify: four words, not enough.
    assert not cleaner.has_minimum_content("a bb ccc dddd eeeee ffffff")
    assert cleaner.has_minimum_content("a bb ccc dddd eeeee ffffff ggggggg")


def test_consecutive_duplicates_are_suppressed_per_app():
    cleaner = TextCleaner()
    text = "the same screen text again"
    assert not cleaner.is_duplicate(text, "Code")
    assert cleaner.is_duplicate(text, "Code")
    assert cleaner.duplicate_skip_count == 1

    # Same text in another app is new
    assert not cleaner.is_duplicate(text, "Firefox")
    assert cleaner.duplicate_skip_count == 0


def test_only_back_to_back_repeats_count_as_duplicates():
    cleaner = TextCleaner()
    assert not cleaner.is_duplicate("first text", "Code")
    assert not cleaner.is_duplicate("second text", "Code")
    assert not cleaner.is_duplicate("first text", "Code")


def test_missing_app_is_treated_as_unknown():
    cleaner = TextCleaner()
    assert not cleaner.is_duplicate("some text", None)
    assert cleaner.is_duplicate("some text", "Unknown")


def test_merge_texts_keeps_order_and_drops_repeats():
    assert merge_texts(["alpha\nbeta", "beta", "   ", " gamma "]) == "alpha\nbeta\ngamma"
