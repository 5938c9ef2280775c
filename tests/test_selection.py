# test_selection.py
"""
Test the Selection Manager
Selection and expansion must always stay within the visible rows
"""

from logguard.services.selection import SelectionManager


def test_toggle_is_idempotent_in_pairs():
    """Toggling the same row twice restores the original selection"""
    print("\n🧪 Testing toggle idempotence\n")

    selection = SelectionManager(["a1", "a2", "a3"])
    selection.toggle_row("a2")
    before = selection.selected_ids

    for row in ["a1", "a2", "a3"]:
        selection.toggle_row(row)
        selection.toggle_row(row)
        print(f"   after double toggle of {row}: {selection.selected_ids}")
        assert selection.selected_ids == before, f"Double toggle of {row} changed the selection"


def test_toggle_hidden_row_is_ignored():
    selection = SelectionManager(["a1"])
    assert selection.toggle_row("zz") is False
    assert selection.is_empty


def test_select_all_and_clear():
    selection = SelectionManager(["a1", "a2", "a3"])
    selection.select_all()
    assert selection.count == 3
    assert selection.all_selected

    selection.clear_all()
    assert selection.is_empty
    assert not selection.all_selected


def test_select_all_subset_ignores_hidden_ids():
    selection = SelectionManager(["a1", "a2"])
    selection.select_all(["a2", "ghost"])
    assert selection.selected_ids == ["a2"]


def test_selection_pruned_when_rows_disappear():
    """After replacing the list, a previously selected id that is gone is no longer selected"""
    print("\n🧪 Testing pruning on refetch\n")

    selection = SelectionManager(["a1", "a2", "a3"])
    selection.select_all()
    selection.toggle_expand("a1")

    pruned = selection.set_visible(["a2", "a3", "a4"])

    print(f"   pruned:   {sorted(pruned)}")
    print(f"   selected: {selection.selected_ids}")

    assert pruned == {"a1"}
    assert not selection.is_selected("a1")
    assert not selection.is_expanded("a1")
    assert selection.selected_ids == ["a2", "a3"]
    assert not selection.all_selected, "a4 is visible but not selected"


def test_selected_ids_follow_display_order():
    selection = SelectionManager(["a3", "a1", "a2"])
    selection.toggle_row("a2")
    selection.toggle_row("a3")
    assert selection.selected_ids == ["a3", "a2"]


def test_expansion_is_independent_of_selection():
    selection = SelectionManager(["a1", "a2"])
    selection.toggle_row("a1")

    assert selection.toggle_expand("a2") is True
    assert selection.expanded_ids == ["a2"]
    assert selection.selected_ids == ["a1"]

    assert selection.toggle_expand("a2") is False
    assert selection.expanded_ids == []
    assert selection.selected_ids == ["a1"]


def test_empty_visible_list():
    selection = SelectionManager()
    selection.select_all()
    assert selection.is_empty
    assert not selection.all_selected
    assert len(selection) == 0


if __name__ == "__main__":
    test_toggle_is_idempotent_in_pairs()
    test_selection_pruned_when_rows_disappear()
    print("\n🔥 Selection manager working!")
