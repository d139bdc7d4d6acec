import random

from mimicbot.agent.typo import ADJACENT_KEYS, add_typo, adjacent_keys


def test_adjacent_keys_neighbours():
    assert sorted(ADJACENT_KEYS["a"]) == ["q", "s", "z"]
    assert sorted(ADJACENT_KEYS["p"]) == ["o"]
    assert sorted(ADJACENT_KEYS["g"]) == ["b", "f", "h", "t"]


def test_adjacent_keys_custom_rows():
    assert adjacent_keys(("ab", "c")) == {"a": ["b", "c"], "b": ["a"], "c": ["a"]}


def test_add_typo_inserts_one_neighbour():
    rng = random.Random(7)
    for _ in range(50):
        text = "keyboard"
        typo = add_typo(text, rng)
        assert len(typo) == len(text) + 1
        # Removing the inserted key gives back the original
        index = next(i for i in range(len(text) + 1) if typo[:i] + typo[i + 1:] == text)
        assert typo[index] in ADJACENT_KEYS[typo[index + 1].lower()]


def test_add_typo_leaves_unmapped_text_alone():
    assert add_typo("", random.Random(1)) == ""
    assert add_typo("123 !?", random.Random(1)) == "123 !?"
