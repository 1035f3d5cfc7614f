"""Unit tests for split_lyric."""

from simplenotation.lyrics import split_lyric


def test_cjk_characters_are_single_items() -> None:
    assert split_lyric("小星星") == ["小", "星", "星"]


def test_words_split_on_spaces() -> None:
    assert split_lyric("twinkle  twinkle little") == ["twinkle", "twinkle", "little"]


def test_hold_is_its_own_item() -> None:
    assert split_lyric("star-") == ["star", "-"]
    assert split_lyric("啊--") == ["啊", "-", "-"]


def test_comma_attaches_to_previous_word() -> None:
    assert split_lyric("hello, world") == ["hello,", "world"]
    assert split_lyric("一,二") == ["一,", "二"]


def test_bracketed_text_is_one_item() -> None:
    assert split_lyric("(how I) wonder") == ["how I", "wonder"]
    assert split_lyric("（一闪）亮") == ["一闪", "亮"]


def test_mixed_line() -> None:
    assert split_lyric("一闪-, twinkle (little star)") == [
        "一", "闪", "-", ",", "twinkle", "little star",
    ]


def test_empty_lyric() -> None:
    assert split_lyric("") == []
