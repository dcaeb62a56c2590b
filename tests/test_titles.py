from streamrelay.utils.titles import normalize_title, titles_match


def test_normalize_strips_case_space_and_punctuation():
    assert normalize_title("The Matrix: Reloaded!") == "thematrixreloaded"
    assert normalize_title("  進擊的巨人 （第一季） ") == "進擊的巨人第一季"
    assert normalize_title(None) == ""


def test_containment_either_way():
    assert titles_match("Matrix", "", "The Matrix", "1999")
    assert titles_match("The Matrix Reloaded", "", "matrix reloaded", "")
    assert not titles_match("Matrix", "", "Inception", "")


def test_year_must_match_when_both_present():
    assert titles_match("Dune", "2021", "Dune", "2021")
    assert titles_match("Dune", "2021", "Dune", "")
    assert titles_match("Dune", "", "Dune", "1984")
    assert not titles_match("Dune", "2021", "Dune", "1984")


def test_empty_titles_never_match():
    assert not titles_match("!!!", "", "anything", "")
    assert not titles_match("Dune", "", "", "")
