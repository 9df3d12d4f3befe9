import pytest

from pentlog.slug import slugify


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Normal String", "normal_string"),
        ("valid-string_123", "valid-string_123"),
        ("Invalid!@#Characters", "invalid_characters"),
        ("", "default"),
        ("!@#$", "default"),
        ("Hello   World", "hello_world"),
        ("  trim me  ", "trim_me"),
        ("file.name", "file.name"),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_slugify_is_idempotent():
    once = slugify("Some Client / Q1")
    assert slugify(once) == once