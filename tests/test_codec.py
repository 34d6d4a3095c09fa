"""
Tests for the todo.md codec: payload markers, lanes, automations, round-trip.
"""
from dataclasses import replace

import pytest

import codec
from models import Automation, Board, Interval, Lane, Task
from conftest import without_ids


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Payload parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_full_payload():
    """All markers are pulled out of a single payload"""
    task = codec.parse_payload(
        "Ship release @20250601 @@14:30 [(202505300900,202505301000)] "
        "!202506011500 #infra #infra $deploy"
    )
    assert task.text == "Ship release"
    assert task.deadline_date == "20250601"
    assert task.deadline_time == "14:30"
    assert task.history == (Interval("202505300900", "202505301000"),)
    assert task.completed_at == "202506011500"
    assert task.rejected_at is None
    assert task.tags == ("infra", "infra")
    assert task.type == "deploy"


def test_open_interval_and_several_pairs():
    task = codec.parse_payload("Write docs [(202501010900,202501011000),(202501020900,)]")
    assert task.text == "Write docs"
    assert task.history == (
        Interval("202501010900", "202501011000"),
        Interval("202501020900", None),
    )
    assert task.has_open_interval


def test_reject_marker_is_not_read_as_completion():
    task = codec.parse_payload("Drop feature !!202501011200")
    assert task.rejected_at == "202501011200"
    assert task.completed_at is None
    assert task.text == "Drop feature"


def test_tags_in_the_middle_of_text():
    task = codec.parse_payload("Buy #errand milk")
    assert task.text == "Buy milk"
    assert task.tags == ("errand",)


def test_hash_inside_a_word_is_not_a_tag():
    task = codec.parse_payload("Learn C# basics")
    assert task.tags == ()
    assert task.text == "Learn C# basics"


def test_type_first_match_wins():
    task = codec.parse_payload("Pay $bill $extra")
    assert task.type == "bill"
    assert task.text == "Pay"


@pytest.mark.parametrize("payload", [
    "Call bob @2025",
    "Call bob @@9:30",
    "Call bob [(2025,)]",
    "Call bob !20250101",
    "Call bob !!123",
])
def test_malformed_markers_stay_in_text(payload):
    """Markers that do not match their exact pattern are left in the text"""
    task = codec.parse_payload(payload)
    assert task.text == payload
    assert task.deadline_date is None
    assert task.deadline_time is None
    assert task.history == ()
    assert task.completed_at is None
    assert task.rejected_at is None


def test_deadline_requires_exactly_eight_digits():
    task = codec.parse_payload("Meet @202506011500")
    assert task.deadline_date is None
    assert task.text == "Meet @202506011500"


def test_empty_text_payload():
    task = codec.parse_payload("#lonely")
    assert task.text == ""
    assert task.tags == ("lonely",)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Payload encoding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_encode_payload_field_order():
    task = Task(
        text="Ship",
        tags=("b", "a"),
        type="deploy",
        deadline_date="20250601",
        deadline_time="14:30",
        history=(Interval("202505300900", None),),
        completed_at="202506011500",
    )
    assert codec.encode_payload(task) == (
        "Ship @20250601 @@14:30 [(202505300900,)] !202506011500 #b #a $deploy"
    )


def test_encode_payload_plain_text():
    assert codec.encode_payload(Task(text="Buy milk")) == "Buy milk"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Whole file
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_decode_five_empty_lanes():
    board = codec.decode("## Todo\n## Doing\n## Pending\n## Done\n## Reject\n")
    assert [lane.name for lane in board.lanes] == ["Todo", "Doing", "Pending", "Done", "Reject"]
    assert all(lane.todos == () for lane in board.lanes)
    assert board.automations == ()
    assert [lane.order for lane in board.lanes] == [0, 1, 2, 3, 4]
    assert [lane.is_restricted for lane in board.lanes] == [False, True, True, True, True]


def test_decode_lane_ids_and_task_order():
    text = "## In  Review\n- [ ] first\n- [ ] second\n\n## Archive\n- [ ] old\n"
    board = codec.decode(text)
    review, archive = board.lanes
    assert review.id == "in-review"
    assert [t.text for t in review.todos] == ["first", "second"]
    assert [t.order for t in review.todos] == [0, 1]
    assert all(t.lane_id == "in-review" for t in review.todos)
    assert archive.is_restricted
    assert archive.todos[0].order == 0


def test_task_ids_are_unique():
    board = codec.decode("## Todo\n- [ ] a\n- [ ] a\n")
    ids = [t.id for t in board.all_tasks()]
    assert len(set(ids)) == 2


def test_task_line_before_any_lane_is_ignored():
    board = codec.decode("- [ ] stray\n## Todo\n- [ ] kept\n")
    assert [t.text for t in board.all_tasks()] == ["kept"]


def test_automations_section():
    text = (
        "## Todo\n- [ ] a\n\n"
        "## Automations\n"
        "daily:Todo:[ water plants ,, stretch ]\n"
        "weekly:Doing:[]\n"
    )
    board = codec.decode(text)
    assert [lane.name for lane in board.lanes] == ["Todo"]
    assert board.automations == (
        Automation("daily", "Todo", ("water plants", "stretch")),
        Automation("weekly", "Doing", ()),
    )
    encoded = codec.encode(board)
    assert encoded.endswith("## Automations\ndaily:Todo:[water plants, stretch]\nweekly:Doing:[]\n")


def test_encode_layout():
    board = Board(lanes=(
        Lane(id="todo", name="Todo", todos=(Task(text="Buy milk", lane_id="todo"),)),
        Lane(id="doing", name="Doing", is_restricted=True, order=1),
    ))
    assert codec.encode(board) == "## Todo\n- [ ] Buy milk\n\n## Doing\n\n"


def test_encode_empty_text_task_survives():
    board = codec.decode("## Todo\n- [ ] #lonely\n")
    text = codec.encode(board)
    assert "- [ ] #lonely\n" in text
    again = codec.decode(text)
    assert again.lanes[0].todos[0].tags == ("lonely",)


@pytest.mark.parametrize("payload,field,value", [
    ("a @20250101 @20250202", "deadline_date", "20250101"),
    ("a @@09:00 b @@10:30", "deadline_time", "09:00"),
    ("a [(202501010900,)] [(202502020900,202502021000)]", "history", (Interval("202501010900", None),)),
    ("a !!202501011200 !!202502021200", "rejected_at", "202501011200"),
    ("a !202501011200 !202502021200", "completed_at", "202501011200"),
    ("Pay $bill $extra", "type", "bill"),
])
def test_repeated_single_markers_keep_the_first(payload, field, value):
    task = codec.parse_payload(payload)
    assert getattr(task, field) == value
    assert task.text in ("a", "a b", "Pay")
    again = codec.parse_payload(codec.encode_payload(task))
    assert replace(again, id="") == replace(task, id="")


def test_round_trip_of_hand_written_file():
    text = (
        "## IceBox\n"
        "- [ ] someday #maybe\n"
        "\n"
        "## Doing\n"
        "- [ ]   Ship release @20250601 @@14:30 [(202505300900,)] #infra $deploy  \n"
        "## Done\n"
        "- [ ] Write notes [(202505290900,202505291000)] !202505291100 #ask\n"
        "- [ ] Broken @2025 marker @20250101 @20250202\n"
        "- [ ] Twice $a $b !!202501011200 !!202501021200\n"
        "\n"
        "## Automations\n"
        "daily:IceBox:[a,b]\n"
    )
    first = codec.decode(text)
    second = codec.decode(codec.encode(first))
    assert without_ids(second) == without_ids(first)
    assert codec.encode(second) == codec.encode(first)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Companion automation file
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_parse_automations_ignores_other_lines():
    found = codec.parse_automations("# Automations\n\nnightly:Todo:[backup]\nnot an automation\n")
    assert found == (Automation("nightly", "Todo", ("backup",)),)


def test_merge_automations_skips_duplicates():
    board = codec.decode("## Todo\n\n## Automations\nnightly:Todo:[backup]\n")
    merged = codec.merge_automations(board, [
        Automation("nightly", "Todo", ("backup",)),
        Automation("weekly", "Todo", ("review",)),
    ])
    assert [a.type for a in merged.automations] == ["nightly", "weekly"]
