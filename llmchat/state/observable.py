"""
Observable attributes for framework-independent state containers.

Modelled on Textual's `reactive`: an `observable` class attribute stores its
value per instance, and assigning a value that compares unequal to the old one
calls the owner's `watch_<name>(old, new)` method (if any) and then every
subscriber. As with reactive lists, collections must be replaced rather than
mutated for a change to be seen.
"""

from typing import Any, Callable, Generic, List, Optional, TypeVar

from loguru import logger


T = TypeVar("T")
Subscriber = Callable[[str, Any, Any], None]


class observable(Generic[T]):
    """
    Descriptor for an attribute whose changes are published.

    Args:
        default: Initial value, or a zero-argument callable producing it per instance
    """

    def __init__(self, default: Any):
        self._default = default
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def _initial(self) -> Any:
        return self._default() if callable(self._default) else self._default

    def __get__(self, obj: Any, objtype: Optional[type] = None) -> Any:
        if obj is None:
            return self
        storage = obj.__dict__
        if self.name not in storage:
            storage[self.name] = self._initial()
        return storage[self.name]

    def __set__(self, obj: Any, value: Any) -> None:
        old = self.__get__(obj)
        obj.__dict__[self.name] = value
        if old != value:
            obj._publish(self.name, old, value)


class Observable:
    """Base class for state containers holding `observable` attributes."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register `callback(name, old, new)` for every change.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, name: str, old: Any, new: Any) -> None:
        watcher = getattr(self, f"watch_{name}", None)
        if watcher is not None:
            watcher(old, new)
        for callback in list(getattr(self, "_subscribers", ())):
            try:
                callback(name, old, new)
            except Exception:
                # One broken view must not stop the others or the engine
                logger.opt(exception=True).error(f"Subscriber failed while handling '{name}' change")
