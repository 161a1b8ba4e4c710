"""Observable values used to expose read-only state to renderers."""

from collections.abc import Callable

from loguru import logger


class Signal[T]:
    """A value holder that notifies subscribers when the value changes.

    Handlers run synchronously in subscription order. A failing handler is
    logged and does not prevent the remaining handlers from running.
    """

    def __init__(self, value: T, *, name: str | None = None) -> None:
        self._value = value
        self._name = name or self.__class__.__name__
        self._handlers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    @property
    def name(self) -> str:
        return self._name

    def set(self, value: T) -> bool:
        """Replace the value. Returns True when subscribers were notified."""
        if value == self._value:
            return False
        self._value = value
        self._notify()
        return True

    def subscribe(self, handler: Callable[[T], None]) -> Callable[[], None]:
        """Register a handler and return a callable that unsubscribes it."""
        self._handlers.append(handler)
        logger.debug(
            f"Subscribed {getattr(handler, '__qualname__', handler)!s} to {self._name}"
        )

        def _unsubscribe() -> None:
            self.unsubscribe(handler)

        return _unsubscribe

    def unsubscribe(self, handler: Callable[[T], None]) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def clear_handlers(self) -> None:
        self._handlers.clear()

    def has_handlers(self) -> bool:
        return bool(self._handlers)

    def _notify(self) -> None:
        # Copy so handlers may unsubscribe while being notified.
        for handler in list(self._handlers):
            try:
                handler(self._value)
            except Exception as e:
                logger.error(f"Error handling {self._name} change: {e}")

    def __repr__(self) -> str:
        return f"Signal(name={self._name!r}, value={self._value!r})"
