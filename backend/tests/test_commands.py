import json

import pytest

from smartboard.commands import (
    Command,
    CommandKind,
    extract_commands,
    normalize_kind,
    strip_fences,
)


def test_strict_json_array():
    commands, matched = extract_commands('[{"kind":"note","content":"hi"}]')
    assert matched is True
    assert commands == [Command(kind=CommandKind.NOTE, fields={"content": "hi"})]


def test_fenced_json_with_commentary():
    raw = 'Sure! ```json\n[{"kind":"note","content":"hi"}]\n```'
    commands, matched = extract_commands(raw)
    assert matched is True
    assert commands == [Command(kind=CommandKind.NOTE, fields={"content": "hi"})]


def test_plain_text_is_not_matched():
    assert extract_commands("no commands here") == ([], False)


def test_blank_text_is_not_matched():
    assert extract_commands("") == ([], False)
    assert extract_commands("   \n ") == ([], False)


def test_bracket_slice_recovers_array_surrounded_by_prose():
    raw = (
        'Here is your lesson:\n[{"action": "addWordArt", "text": "Photosynthesis"}]\n'
        "Let me know if you want more!"
    )
    commands, matched = extract_commands(raw)
    assert matched
    assert commands[0].kind is CommandKind.WORD_ART
    assert commands[0].fields == {"text": "Photosynthesis"}


def test_malformed_json_is_not_matched():
    commands, matched = extract_commands('[{"kind": "note", "content": "hi"')
    assert (commands, matched) == ([], False)


def test_empty_array_is_not_matched():
    assert extract_commands("[]") == ([], False)


def test_array_of_non_objects_is_not_matched():
    assert extract_commands("[1, 2, 3]") == ([], False)
    assert extract_commands('["note", "list"]') == ([], False)


def test_unknown_and_missing_kinds_are_dropped():
    raw = json.dumps(
        [
            {"kind": "note", "content": "keep me"},
            {"kind": "hologram", "content": "drop me"},
            {"content": "no kind at all"},
            {"action": "addList", "title": "Steps", "items": ["a", "b"]},
        ]
    )
    commands, matched = extract_commands(raw)
    assert matched
    assert [c.kind for c in commands] == [CommandKind.NOTE, CommandKind.LIST]


def test_only_unknown_kinds_is_not_matched():
    assert extract_commands('[{"kind": "hologram"}]') == ([], False)


def test_action_style_commands_and_ids():
    raw = json.dumps(
        [
            {"action": "addNote", "id": "a", "content": "Sun", "x": 100, "y": "200"},
            {"action": "addNote", "id": "b", "content": "Leaf"},
            {"action": "connect", "from": "a", "to": "b", "label": "light"},
        ]
    )
    commands, _ = extract_commands(raw)

    assert commands[0].local_id == "a"
    assert (commands[0].x, commands[0].y) == (100.0, 200.0)
    assert (commands[1].x, commands[1].y) == (None, None)
    assert commands[2].kind is CommandKind.CONNECT
    assert (commands[2].source, commands[2].target) == ("a", "b")
    assert commands[2].fields == {"label": "light"}
    assert not commands[2].is_node


def test_local_id_field_takes_precedence_over_id():
    commands, _ = extract_commands('[{"kind": "note", "localId": "x", "id": "y"}]')
    assert commands[0].local_id == "x"


def test_unrecognized_fields_are_not_carried_over():
    commands, _ = extract_commands(
        '[{"kind": "shape", "shapeType": "circle", "onclick": "alert(1)"}]'
    )
    assert commands[0].fields == {"shapeType": "circle"}


def test_non_numeric_coordinates_become_missing():
    commands, _ = extract_commands('[{"kind": "note", "x": "left", "y": true}]')
    assert commands[0].x is None
    assert commands[0].y is None


def test_wrapped_commands_object():
    commands, matched = extract_commands('{"commands": [{"kind": "code", "code": "x = 1"}]}')
    assert matched
    assert commands[0].kind is CommandKind.CODE


def test_reextracting_cleaned_output_is_identical():
    raw = '```json\n[{"action":"addMindMap","id":"m","title":"Cells","nodes":[{"id":"n1","label":"Nucleus"}]},{"action":"connect","from":"m","to":"n1"}]\n```'
    first, _ = extract_commands(raw)
    second, _ = extract_commands(strip_fences(raw))
    assert first == second


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("note", CommandKind.NOTE),
        ("addNote", CommandKind.NOTE),
        ("add_note", CommandKind.NOTE),
        ("WordArt", CommandKind.WORD_ART),
        ("addWordArt", CommandKind.WORD_ART),
        ("mind-map", CommandKind.MIND_MAP),
        ("addMindMap", CommandKind.MIND_MAP),
        ("addComparison", CommandKind.COMPARISON),
        ("connect", CommandKind.CONNECT),
        ("sketch", None),
        ("", None),
        (None, None),
        (42, None),
    ],
)
def test_normalize_kind(raw, expected):
    assert normalize_kind(raw) is expected


def test_headline_fields():
    commands, _ = extract_commands(
        json.dumps(
            [
                {"kind": "note", "content": "  Body  "},
                {"kind": "wordArt", "text": "Title"},
                {"kind": "mindMap", "title": "Center"},
                {"kind": "shape", "shapeType": "circle"},
            ]
        )
    )
    assert commands[0].note_body == "Body"
    assert commands[1].title == "Title"
    assert commands[2].title == "Center"
    assert commands[3].title == ""
    assert commands[3].note_body == ""


def test_deeply_nested_output_is_unmatched():
    depth = 100000
    assert extract_commands("[" * depth + "]" * depth) == ([], False)
    assert extract_commands("Here: " + "[" * depth + "]" * depth) == ([], False)


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", '"inf"', '"nan"', "1e400"])
def test_non_finite_coordinates_count_as_missing(value):
    commands, matched = extract_commands(
        '[{"kind":"note","content":"hi","x":%s,"y":%s}]' % (value, value)
    )
    assert matched is True
    assert (commands[0].x, commands[0].y) == (None, None)
