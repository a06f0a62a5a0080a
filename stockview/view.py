"""
InventoryView: everything the presentation layer talks to for one mounted screen.

Mount with `async with InventoryView(store, "equipment") as view:`; the live
subscription is acquired on entry and released on every exit path.
"""

from typing import Callable, Optional, Union

from .errors import MutationOutcome, SubscriptionError
from .mirror import LiveCollectionMirror
from .mutations import DeleteConfirmation, MutationCoordinator
from .parameters import ParameterState
from .projection import ProjectionCache
from .schemas import EditDraft, NewItemDraft, Projection, Record, SortMode, ViewParameters
from .store import DocumentStore


class InventoryView:
    def __init__(self, store: DocumentStore, collection: str):
        self.mirror = LiveCollectionMirror(store, collection)
        self.parameters = ParameterState()
        self.coordinator = MutationCoordinator(store, collection)
        self._cache = ProjectionCache()
        self._listeners: list[Callable[["InventoryView"], None]] = []

        self.selected: Optional[Record] = None
        self.new_item_draft = NewItemDraft()
        self.add_surface_visible = False

        self.mirror.add_listener(lambda _: self._notify())
        self.parameters.add_listener(lambda _: self._notify())

    # --- Mount / unmount ---

    def mount(self) -> None:
        self.mirror.start()

    def unmount(self) -> None:
        self.mirror.stop()

    async def __aenter__(self) -> "InventoryView":
        self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.unmount()

    # --- Derived state ---

    @property
    def projection(self) -> Projection:
        return self._cache.get(self.mirror.version, self.mirror.records, self.parameters.value)

    @property
    def loading(self) -> bool:
        return self.mirror.loading

    @property
    def error(self) -> Optional[SubscriptionError]:
        return self.mirror.error

    @property
    def filters(self) -> ViewParameters:
        return self.parameters.value

    def on_change(self, listener: Callable[["InventoryView"], None]) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # --- Filters ---

    def set_search_text(self, text: Optional[str]) -> None:
        self.parameters.set_search_text(text)

    def set_brand_filter(self, brand: Optional[str]) -> None:
        self.parameters.set_brand_filter(brand)

    def set_sort_mode(self, mode: Union[SortMode, str, None]) -> None:
        self.parameters.set_sort_mode(mode)

    def set_max_count(self, value: Union[int, float, None]) -> None:
        self.parameters.set_max_count(value)

    def clear_filters(self) -> None:
        self.parameters.clear_all()

    # --- Selection ---

    def select(self, record: Optional[Record]) -> None:
        self.selected = record

    def clear_selection(self) -> None:
        self.selected = None

    def edit_draft(self) -> Optional[EditDraft]:
        """An edit form seeded from the selected record."""
        if self.selected is None:
            return None
        return EditDraft.from_record(self.selected)

    # --- Add ---

    def open_add_surface(self) -> None:
        self.add_surface_visible = True

    def close_add_surface(self) -> None:
        self.add_surface_visible = False

    def update_draft(self, **fields: str) -> NewItemDraft:
        self.new_item_draft = NewItemDraft(**{**self.new_item_draft.model_dump(), **fields})
        return self.new_item_draft

    async def add_item(self, draft: Optional[NewItemDraft] = None) -> MutationOutcome:
        if draft is not None:
            self.new_item_draft = draft
        outcome = await self.coordinator.add(self.new_item_draft)
        if outcome.ok:
            self.new_item_draft = NewItemDraft()
            self.add_surface_visible = False
        return outcome

    # --- Update / delete ---

    async def update_item(self, item: Union[Record, EditDraft]) -> MutationOutcome:
        outcome = await self.coordinator.update(item)
        if outcome.ok:
            self.clear_selection()
        return outcome

    async def update_selected(self, draft: Optional[EditDraft] = None) -> MutationOutcome:
        if self.selected is None:
            raise RuntimeError("No item is selected.")
        if draft is not None and draft.id != self.selected.id:
            raise ValueError("The id of an existing item cannot change.")
        return await self.update_item(draft or self.selected)

    def request_delete(self, record: Optional[Record] = None) -> DeleteConfirmation:
        record = record or self.selected
        if record is None:
            raise RuntimeError("No item is selected.")
        return self.coordinator.request_delete(record)

    async def delete_item(self, confirmation: DeleteConfirmation) -> MutationOutcome:
        outcome = await self.coordinator.delete(confirmation)
        if outcome.ok:
            self.clear_selection()
        return outcome
