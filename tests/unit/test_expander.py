from automator.core.expander import expand_actions


def test_repeat_suffix_expands_in_place():
    assert expand_actions(["ax3", "b"]) == ["a", "a", "a", "b"]


def test_zero_count_drops_the_element():
    assert expand_actions(["xx0"]) == []
    assert expand_actions(["a", "tabx0", "b"]) == ["a", "b"]


def test_numbers_pass_through_and_greedy_text():
    assert expand_actions([5, "xx1"]) == [5, "x"]
    assert expand_actions(["enterx2"]) == ["enter", "enter"]


def test_malformed_suffix_stays_literal():
    raw = ["ax", "ax-1", "ax1.5", "x5", "ax3\n", "enter"]
    assert expand_actions(raw) == raw


def test_non_strings_keep_their_order_and_identity():
    def fn():
        return None

    out = expand_actions([None, fn, 2.5, "upx2", fn])
    assert out == [None, fn, 2.5, "up", "up", fn]
    assert out[1] is fn


def test_input_is_not_mutated():
    raw = ["ax2"]
    expand_actions(raw)
    assert raw == ["ax2"]
