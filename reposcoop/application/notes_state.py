"""Expand/collapse state of release notes, kept outside the release records."""
from typing import Dict, Iterable, Union


ReleaseId = Union[int, str]


class NotesState:
    """Maps release ids to whether their notes are shown expanded.

    Releases are collapsed unless marked otherwise.
    """

    def __init__(self, expanded: Iterable[ReleaseId] = ()):
        self._expanded: Dict[ReleaseId, bool] = {release_id: True for release_id in expanded}

    def is_expanded(self, release_id: ReleaseId) -> bool:
        return self._expanded.get(release_id, False)

    def set_expanded(self, release_id: ReleaseId, expanded: bool) -> None:
        if expanded:
            self._expanded[release_id] = True
        else:
            self._expanded.pop(release_id, None)

    def toggle(self, release_id: ReleaseId) -> bool:
        """Flip the state of one release and return the new state."""
        expanded = not self.is_expanded(release_id)
        self.set_expanded(release_id, expanded)
        return expanded

    def collapse_all(self) -> None:
        self._expanded.clear()

    def __len__(self) -> int:
        return len(self._expanded)
