# logguard/services/selection.py
"""
Row selection and expansion state for the anomaly review table

Two independent id sets keyed by Anomaly.id:
- selected: rows checked for bulk actions
- expanded: rows whose raw log line is shown

Both are kept a subset of the currently visible ids; replacing the visible
list (refetch or filter change) prunes ids that disappeared.
"""

import logging
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


class SelectionManager:
    """
    Usage:
        selection = SelectionManager(["a1", "a2", "a3"])
        selection.toggle_row("a1")
        selection.select_all()
        selection.set_visible(["a2"])  # a1 and a3 are pruned
    """

    def __init__(self, visible_ids: Optional[Iterable[str]] = None):
        self._visible: List[str] = []
        self._selected: Set[str] = set()
        self._expanded: Set[str] = set()
        self.set_visible(visible_ids or [])

    # ===== VISIBLE ROWS =====

    def set_visible(self, ids: Iterable[str]) -> Set[str]:
        """
        Replace the visible id list and prune stale selections

        Returns:
            Ids that were dropped from the selection
        """
        self._visible = list(dict.fromkeys(ids))
        visible = set(self._visible)

        pruned = self._selected - visible
        if pruned:
            logger.debug(f"Pruned {len(pruned)} stale selections")
        self._selected &= visible
        self._expanded &= visible
        return pruned

    @property
    def visible_ids(self) -> List[str]:
        return list(self._visible)

    def is_visible(self, anomaly_id: str) -> bool:
        return anomaly_id in self._visible

    # ===== SELECTION =====

    def toggle_row(self, anomaly_id: str) -> bool:
        """
        Select the row if unselected, unselect it otherwise

        Returns:
            True when the row is selected afterwards
        """
        if anomaly_id in self._selected:
            self._selected.discard(anomaly_id)
            return False

        if not self.is_visible(anomaly_id):
            logger.debug(f"Ignoring toggle for hidden row {anomaly_id}")
            return False

        self._selected.add(anomaly_id)
        return True

    def select_all(self, ids: Optional[Iterable[str]] = None):
        """
        Replace the selection with the visible rows

        Args:
            ids: Optional subset to select; anything not visible is ignored
        """
        if ids is None:
            self._selected = set(self._visible)
        else:
            visible = set(self._visible)
            self._selected = {i for i in ids if i in visible}

    def clear_all(self):
        self._selected = set()

    def is_selected(self, anomaly_id: str) -> bool:
        return anomaly_id in self._selected

    @property
    def selected_ids(self) -> List[str]:
        """Selected ids in display order"""
        return [i for i in self._visible if i in self._selected]

    @property
    def count(self) -> int:
        return len(self._selected)

    @property
    def is_empty(self) -> bool:
        return not self._selected

    @property
    def all_selected(self) -> bool:
        """Header checkbox state"""
        return bool(self._visible) and len(self._selected) == len(self._visible)

    # ===== EXPANSION =====

    def toggle_expand(self, anomaly_id: str) -> bool:
        """
        Show or hide the raw log line of a row; never touches the selection

        Returns:
            True when the row is expanded afterwards
        """
        if anomaly_id in self._expanded:
            self._expanded.discard(anomaly_id)
            return False

        if not self.is_visible(anomaly_id):
            return False

        self._expanded.add(anomaly_id)
        return True

    def is_expanded(self, anomaly_id: str) -> bool:
        return anomaly_id in self._expanded

    @property
    def expanded_ids(self) -> List[str]:
        return [i for i in self._visible if i in self._expanded]

    def __len__(self) -> int:
        return len(self._selected)

    def __repr__(self) -> str:
        return f"<SelectionManager(selected={len(self._selected)}, visible={len(self._visible)})>"
