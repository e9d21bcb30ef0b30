"""Per-menu drag-and-drop editors.

Each menu location and language pair gets one NavigationEditor so that a
reorder still being saved blocks the next reorder of the same menu.
"""

from navstage.core.projector import DropProjector
from navstage.core.reconciler import PersistenceReconciler, TreeState
from navstage.core.session import NavigationEditor
from navstage.store import NavigationStore


class EditorRegistry:
    """Creates and keeps one NavigationEditor per (menu_key, language_code)."""

    def __init__(
        self,
        store: NavigationStore,
        projector: DropProjector,
        *,
        timeout: float | None = 10.0,
    ) -> None:
        self._store = store
        self._projector = projector
        self._timeout = timeout
        self._editors: dict[tuple[str, str], NavigationEditor] = {}

    def __len__(self) -> int:
        return len(self._editors)

    def get(self, menu_key: str, language_code: str) -> NavigationEditor:
        """Get the editor of a menu, creating it on first use.

        Callers check that the menu holds items first, so editors exist
        only for menus present in the store.
        """
        key = (menu_key, language_code)
        editor = self._editors.get(key)
        if editor is None:
            reconciler = PersistenceReconciler(self._store.persist, timeout=self._timeout)
            editor = NavigationEditor(TreeState(), self._projector, reconciler)
            self._editors[key] = editor
        return editor
