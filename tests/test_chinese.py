from streamrelay.utils.chinese import to_simplified


def test_traditional_is_converted():
    assert to_simplified("進擊的巨人") == "进击的巨人"


def test_other_text_is_unchanged():
    assert to_simplified("The Matrix 1999") == "The Matrix 1999"
    assert to_simplified("进击的巨人") == "进击的巨人"
    assert to_simplified("") == ""
