from reviewdesk.sanitize import (
    RICH_TAGS, ContentRules, plain_text, sanitize_html, strip_utm, truncate_html, validate_content,
)


def test_script_blocks_removed():
    assert sanitize_html("<p>Hi<script>alert(1)</script></p>") == "<p>Hi</p>"


def test_disallowed_tags_stripped():
    assert sanitize_html("<div><b>bold</b></div>") == "<b>bold</b>"
    assert "<a" not in sanitize_html('<a href="https://x.com">x</a>')


def test_links_are_secured_and_untracked():
    html = sanitize_html('<p><a href="https://ex.com/?utm_source=mail&id=2">link</a></p>', RICH_TAGS)
    assert 'href="https://ex.com/?id=2"' in html
    assert 'target="_blank"' in html
    assert 'rel="nofollow noopener noreferrer"' in html


def test_unsafe_protocols_and_data_images_dropped():
    html = sanitize_html('<a href="javascript:alert(1)">x</a><img src="data:image/png;base64,AAA" alt="pic">',
                         RICH_TAGS)
    assert "javascript" not in html
    assert "data:" not in html


def test_plain_text_and_truncate():
    assert plain_text("<p>a &amp; b</p>") == "a & b"
    assert truncate_html("<p>hello world</p>", 5) == "<p>hello...</p>"
    assert truncate_html("<p>hi</p>", 5) == "<p>hi</p>"


def test_strip_utm():
    assert strip_utm("https://ex.com/a?utm_medium=x&q=1") == "https://ex.com/a?q=1"


def test_validate_content_rules():
    assert validate_content("<p>short</p>").errors == ["Content must be at least 10 characters"]
    check = validate_content("<p>" + "word " * 10 + "</p>", ContentRules(max_length=20))
    assert "Content cannot exceed 20 characters" in check.errors


def test_validate_content_images_and_text_shape():
    html = '<p>A perfectly normal review body</p><img src="https://x.test/a.png" alt="ab">'
    assert validate_content(html).errors == ["Image 1: Alt text must be 3-120 characters"]

    check = validate_content("<p>Great place, sooooooo good</p>")
    assert check.errors == ["Text contains too many repeated characters"]

    check = validate_content("<p>look " + "x" * 40 + "y" * 40 + "</p>")
    assert "Text contains too many consecutive characters without spaces" in check.errors


def test_links_without_tracking_keep_their_query():
    html = sanitize_html('<a href="https://shop.vn/p?a=1&b=2">x</a>', RICH_TAGS)
    assert 'href="https://shop.vn/p?a=1&amp;b=2"' in html
    assert sanitize_html(html, RICH_TAGS) == html


def test_stripping_tracking_keeps_other_params():
    html = sanitize_html('<a href="https://shop.vn/p?a=1&utm_campaign=tet&b=2">x</a>', RICH_TAGS)
    assert 'href="https://shop.vn/p?a=1&amp;b=2"' in html
    assert sanitize_html(html, RICH_TAGS) == html
    assert strip_utm("https://ex.com/a?q=1&r=2") == "https://ex.com/a?q=1&r=2"
