from timelapse_mcp.duplicates import identical


def test_identical_requires_exact_bytes() -> None:
    assert identical(b"abc", b"abc")
    assert not identical(b"abc", b"abd")
    assert not identical(b"abc", b"abc ")


def test_identical_with_missing_side_is_false() -> None:
    assert not identical(None, b"abc")
    assert not identical(b"abc", None)
    assert not identical(None, None)
