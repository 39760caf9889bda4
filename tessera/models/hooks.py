"""
Entity lifecycle hooks.

The hook set is fixed (``LifecycleHook``). An entity subscribes either by
defining a method named after the hook, which the metaclass picks up at
class creation, or by registering a callback on the type's registry:

    class User(Entity):
        def before_save(self):
            if not self.get_attribute("email"):
                return False          # aborts save(); it returns False

        def after_update(self, dirty):
            audit(self, dirty)

    @User.hooks.on(LifecycleHook.AFTER_INSERT)
    def welcome(user):
        send_welcome(user)

Hook methods run first, then registered callbacks in priority order
(lower first, ties by registration order). A ``before_*`` hook that
returns exactly ``False`` stops the chain and aborts the operation.
Exceptions raised by hooks propagate to the caller.

Payloads: ``after_update`` receives ``dirty`` (the changed raw values,
without the automatic ``updated_at``). Other hooks receive no arguments
besides the instance.
"""

from __future__ import annotations

import contextlib
import logging
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Tuple

logger = logging.getLogger("tessera.models.hooks")

__all__ = ["LifecycleHook", "HookRegistry"]


class LifecycleHook(str, Enum):
    BEFORE_SAVE = "before_save"
    BEFORE_INSERT = "before_insert"
    AFTER_INSERT = "after_insert"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    AFTER_SAVE = "after_save"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    BEFORE_RESTORE = "before_restore"
    AFTER_RESTORE = "after_restore"

    @property
    def can_abort(self) -> bool:
        return self.value.startswith("before_")


class HookRegistry:
    """
    Ordered hook callbacks for one entity type.

    Callbacks are stored as ``(hook, fn, priority)`` entries; method
    hooks are looked up on the instance at run time so subclass
    overrides are honoured.
    """

    def __init__(self, owner: str, method_hooks: Optional[set] = None, parent: Optional[HookRegistry] = None):
        self.owner = owner
        self.method_hooks = frozenset(method_hooks or ())
        self._callbacks: List[Tuple[LifecycleHook, Callable, int]] = (
            list(parent._callbacks) if parent is not None else []
        )

    @classmethod
    def for_class(cls, entity_cls: type, parent: Optional[HookRegistry] = None) -> HookRegistry:
        """Collect the hook methods ``entity_cls`` defines (directly or inherited)."""
        found = {hook for hook in LifecycleHook if callable(getattr(entity_cls, hook.value, None))}
        return cls(entity_cls.__name__, found, parent)

    def register(self, hook: LifecycleHook, fn: Callable, *, priority: int = 100) -> Callable:
        """Add ``fn(instance, **payload)`` for ``hook``. Duplicates are ignored."""
        hook = LifecycleHook(hook)
        for existing_hook, existing_fn, _ in self._callbacks:
            if existing_hook is hook and existing_fn is fn:
                return fn
        self._callbacks.append((hook, fn, priority))
        self._callbacks.sort(key=lambda entry: entry[2])
        return fn

    def on(self, hook: LifecycleHook, *, priority: int = 100) -> Callable:
        """Decorator form of :meth:`register`."""
        def decorator(fn: Callable) -> Callable:
            return self.register(hook, fn, priority=priority)
        return decorator

    def unregister(self, hook: LifecycleHook, fn: Callable) -> bool:
        hook = LifecycleHook(hook)
        for i, (existing_hook, existing_fn, _) in enumerate(self._callbacks):
            if existing_hook is hook and existing_fn is fn:
                self._callbacks.pop(i)
                return True
        return False

    @contextlib.contextmanager
    def registered(self, hook: LifecycleHook, fn: Callable, *, priority: int = 100) -> Iterator[None]:
        """Temporarily register ``fn`` for the duration of the block."""
        self.register(hook, fn, priority=priority)
        try:
            yield
        finally:
            self.unregister(hook, fn)

    def callbacks(self, hook: LifecycleHook) -> List[Callable]:
        hook = LifecycleHook(hook)
        return [fn for h, fn, _ in self._callbacks if h is hook]

    def run(self, hook: LifecycleHook, instance: Any, **payload: Any) -> bool:
        """
        Run every callback for ``hook``.

        Returns False when a ``before_*`` callback returned exactly False.
        """
        hook = LifecycleHook(hook)
        if hook in self.method_hooks:
            result = getattr(instance, hook.value)(**payload)
            if result is False and hook.can_abort:
                logger.debug(f"{self.owner}.{hook.value} aborted the operation")
                return False
        for fn in self.callbacks(hook):
            result = fn(instance, **payload)
            if result is False and hook.can_abort:
                logger.debug(f"{self.owner}: {hook.value} callback {getattr(fn, '__name__', fn)!r} aborted the operation")
                return False
        return True

    def clear(self) -> None:
        """Remove all registered callbacks (method hooks stay)."""
        self._callbacks.clear()

    def __repr__(self) -> str:
        return f"<HookRegistry '{self.owner}' methods={sorted(h.value for h in self.method_hooks)} callbacks={len(self._callbacks)}>"
