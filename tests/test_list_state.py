import pytest

from reviewdesk.list_state import (
    Action, ListState, fetch_params, receive_page, reduce, set_page, set_status, toggle_select, toggle_select_all,
)


def selected_state(**kwargs):
    return ListState(visible_ids=("a", "b", "c"), selected=frozenset({"a"}), pages=4, total=40, **kwargs)


def test_filter_change_resets_page_and_selection():
    state = selected_state(page=3)
    new = set_status(state, "draft")
    assert new.page == 1
    assert new.status == "draft"
    assert new.selected == frozenset()


def test_set_page_clamps_to_known_pages():
    state = selected_state()
    assert set_page(state, 9).page == 4
    assert set_page(state, 0).page == 1
    assert set_page(ListState(), 7).page == 7


def test_page_change_clears_selection():
    assert set_page(selected_state(), 2).selected == frozenset()


def test_toggle_select_keeps_page():
    state = toggle_select(selected_state(page=2), "b")
    assert state.page == 2
    assert state.selected == {"a", "b"}
    assert toggle_select(state, "a").selected == {"b"}


def test_toggle_select_all():
    state = toggle_select_all(selected_state())
    assert state.selected == {"a", "b", "c"}
    assert toggle_select_all(state).selected == frozenset()


def test_receive_page_drops_offscreen_selection():
    state = ListState(selected=frozenset({"a", "z"}))
    state = receive_page(state, ["a", "b"], total=2, pages=1)
    assert state.selected == {"a"}
    assert state.visible_ids == ("a", "b")


def test_fetch_params_treat_all_as_unset():
    state = ListState(status="all", type="all", search=" shoes ")
    params = fetch_params(state, search_param="query")
    assert params["status"] is None
    assert params["type"] is None
    assert params["query"] == "shoes"
    assert "search" not in params


def test_reduce_date_range_and_unknown_action():
    state = reduce(ListState(page=3), Action(type="set_date_range", value={"dateFrom": "2024-01-01"}))
    assert state.date_from == "2024-01-01"
    assert state.date_to is None
    assert state.page == 1
    with pytest.raises(ValueError):
        reduce(state, Action(type="explode"))
