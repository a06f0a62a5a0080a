import logging
from typing import Callable, Optional, Union

from . import utils
from .schemas import SortMode, ViewParameters

logger = logging.getLogger(__name__)


class ParameterState:
    """
    Observable holder of the current ViewParameters.
    Each setter replaces one field; listeners fire only on an actual change.
    """

    def __init__(self, initial: Optional[ViewParameters] = None):
        self._value = initial or ViewParameters()
        self._listeners: list[Callable[[ViewParameters], None]] = []
        self._clear_hooks: list[Callable[[], None]] = []

    @property
    def value(self) -> ViewParameters:
        return self._value

    def add_listener(self, listener: Callable[[ViewParameters], None]) -> None:
        self._listeners.append(listener)

    def on_clear(self, hook: Callable[[], None]) -> None:
        """Registers a presentation-layer hook run by clear_all (e.g. dismiss the keyboard)."""
        self._clear_hooks.append(hook)

    def _replace(self, **changes) -> None:
        updated = self._value.model_copy(update=changes)
        if updated == self._value:
            return
        self._value = updated
        logger.debug(f"View parameters changed: {changes}")
        for listener in list(self._listeners):
            listener(updated)

    def set_search_text(self, text: Optional[str]) -> None:
        self._replace(search_text=text or "")

    def set_brand_filter(self, brand: Optional[str]) -> None:
        # An empty selection means "all brands".
        self._replace(brand_filter=brand or None)

    def set_sort_mode(self, mode: Union[SortMode, str, None]) -> None:
        # Raises ValueError for an unknown mode string.
        self._replace(sort_mode=SortMode(mode) if mode is not None else SortMode.NONE)

    def set_max_count(self, value: Union[int, float, None]) -> None:
        if value is None:
            self._replace(max_count=None)
            return
        rounded = utils.round_half_up(value)
        if rounded < 0:
            raise ValueError("max_count must be >= 0.")
        self._replace(max_count=rounded)

    def clear_all(self) -> None:
        """Resets every field to its default in one step, then runs the clear hooks."""
        self._replace(**ViewParameters().model_dump())
        for hook in list(self._clear_hooks):
            hook()
