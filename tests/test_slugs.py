from reviewdesk.slugs import SlugField, auto_slug, slug_errors, slugify, validate_slug_format


def test_slugify_vietnamese():
    assert slugify("Phở Hà Nội, ngon!") == "pho-ha-noi-ngon"
    assert slugify("Đường sách") == "duong-sach"
    assert slugify("  a__b//c  ") == "a-b-c"
    assert slugify(None) == ""


def test_auto_slug_truncates_without_trailing_hyphen():
    slug = auto_slug("word " * 20)
    assert len(slug) <= 50
    assert not slug.endswith("-")


def test_validate_slug_format():
    assert validate_slug_format("good-slug-1") == (True, None)
    assert validate_slug_format("Bad Slug") == (
        False, "Slug can only contain lowercase letters, numbers, and hyphens")
    assert validate_slug_format("-abc")[1] == "Slug cannot start or end with a hyphen"
    assert validate_slug_format("a--b")[1] == "Slug cannot contain consecutive hyphens"
    assert validate_slug_format("")[1] == "Slug is required"


def test_slug_errors_include_length():
    assert "Slug must be at least 2 characters long" in slug_errors("a")
    assert "Slug cannot be longer than 100 characters" in slug_errors("a" * 101)


def test_slug_follows_source_until_edited():
    field = SlugField.hydrate("", "")
    field = field.source_changed("Coffee House")
    assert field.value == "coffee-house"
    field = field.edit("my-coffee", "Coffee House")
    assert field.manually_edited
    assert field.source_changed("Tea House").value == "my-coffee"


def test_clearing_slug_reattaches_it():
    field = SlugField(value="custom", manually_edited=True).edit("", "Tea House")
    assert field == SlugField(value="tea-house", manually_edited=False)


def test_hydrate_detects_manual_slug():
    assert not SlugField.hydrate("coffee-house", "Coffee House").manually_edited
    assert SlugField.hydrate("cafe", "Coffee House").manually_edited
