from taborganizer.group_state import GroupState

from .conftest import make_tab


def assert_invariants(state):
    ids = [t.id for tabs in state.snapshot().values() for t in tabs]
    assert len(ids) == len(set(ids))
    assert all(state.snapshot().values())


def test_place_appends_in_join_order():
    state = GroupState()
    assert state.place(make_tab(1), "development") is None
    state.place(make_tab(2), "development")
    assert [t.id for t in state.members("development")] == [1, 2]
    assert_invariants(state)


def test_place_moves_between_categories():
    state = GroupState()
    state.place(make_tab(1), "development")
    state.place(make_tab(2), "development")
    assert state.place(make_tab(1), "entertainment") == "development"
    assert state.find(1) == "entertainment"
    assert [t.id for t in state.members("development")] == [2]
    assert_invariants(state)


def test_move_drops_emptied_category():
    state = GroupState()
    state.place(make_tab(1), "development")
    state.place(make_tab(1), "finance")
    assert state.categories == ["finance"]


def test_replace_in_place_keeps_position():
    state = GroupState()
    state.place(make_tab(1, title="old"), "development")
    state.place(make_tab(2), "development")
    state.place(make_tab(1, title="new"), "development")
    members = state.members("development")
    assert [t.id for t in members] == [1, 2]
    assert members[0].title == "new"


def test_remove():
    state = GroupState()
    state.place(make_tab(1), "development")
    state.place(make_tab(2), "finance")
    assert state.remove(1) == "development"
    assert "development" not in state.categories
    assert state.remove(1) is None
    assert len(state) == 1


def test_snapshot_is_a_copy():
    state = GroupState()
    state.place(make_tab(1), "development")
    snapshot = state.snapshot()
    snapshot["development"].clear()
    snapshot["other"] = []
    assert len(state) == 1
    assert state.categories == ["development"]


def test_touch_and_unused():
    state = GroupState()
    state.place(make_tab(1, last_accessed=100.0), "development")
    state.place(make_tab(2, last_accessed=100.0), "development")
    assert state.touch(2, when=5000.0)
    assert not state.touch(99)
    assert [t.id for t in state.unused(older_than=1000.0)] == [1]


def test_payload_round_trip_repairs_invariants():
    payload = {
        "development": [make_tab(1).model_dump(), {"url": "missing id"}, make_tab(2).model_dump()],
        "finance": [make_tab(1).model_dump()],
        "empty": [],
    }
    state = GroupState.from_payload(payload)
    assert state.find(1) == "development"
    assert [t.id for t in state.members("development")] == [1, 2]
    assert state.categories == ["development"]
    assert_invariants(state)

    again = GroupState.from_payload(state.to_payload())
    assert again.snapshot() == state.snapshot()
