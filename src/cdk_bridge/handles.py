"""Reference-counted handles around native object pointers.

A handle's call counter starts at 0. Every borrow adds one and every release
subtracts one; ``destroy`` subtracts the extra one that keeps an idle handle
alive. The native free function runs on the single transition to -1.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from cdk_bridge.errors import HandleDestroyedError
from cdk_bridge.errors import HandleOverflowError

if TYPE_CHECKING:
    from cdk_bridge.bridge import NativeBridge

logger = logging.getLogger(__name__)

COUNTER_MAX: int = 2**63 - 1


class AtomicCounter:
    """Signed counter whose primitives each run as one indivisible step."""

    _value: int
    _lock: threading.Lock

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def load(self) -> int:
        with self._lock:
            return self._value

    def compare_and_swap(self, expected: int, new: int) -> bool:
        """Store ``new`` only when the current value equals ``expected``.

        :param expected: Value the caller last observed.
        :param new: Replacement value.
        :returns: ``True`` when the swap happened.
        """
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def add_and_get(self, delta: int) -> int:
        """Add ``delta`` and return the resulting value.

        :param delta: Signed increment.
        :returns: Value after the addition.
        """
        with self._lock:
            self._value += delta
            return self._value


class AtomicFlag:
    """Boolean that can be flipped exactly once with compare-and-swap."""

    _value: bool
    _lock: threading.Lock

    def __init__(self) -> None:
        self._value = False
        self._lock = threading.Lock()

    def load(self) -> bool:
        with self._lock:
            return self._value

    def compare_and_swap(self, expected: bool, new: bool) -> bool:
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True


class NativeHandle:
    """Host-side owner of one native object pointer."""

    _bridge: "NativeBridge"
    _pointer: int
    _clone_symbol: str
    _free_symbol: str
    _type_name: str
    _call_counter: AtomicCounter
    _destroyed: AtomicFlag

    def __init__(
        self,
        bridge: "NativeBridge",
        pointer: int,
        clone_symbol: str,
        free_symbol: str,
        type_name: str,
    ) -> None:
        """Wrap a pointer just returned by a native constructor or method.

        :param bridge: Bridge the pointer came from.
        :param pointer: Native object pointer.
        :param clone_symbol: Native symbol that clones the pointer.
        :param free_symbol: Native symbol that frees the pointer.
        :param type_name: Type name used in error messages.
        """
        self._bridge = bridge
        self._pointer = pointer
        self._clone_symbol = clone_symbol
        self._free_symbol = free_symbol
        self._type_name = type_name
        self._call_counter = AtomicCounter(0)
        self._destroyed = AtomicFlag()

    @property
    def bridge(self) -> "NativeBridge":
        return self._bridge

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def call_counter(self) -> int:
        """Return the current call counter.

        :returns: Outstanding borrows, or -1 once freed.
        """
        return self._call_counter.load()

    @property
    def is_destroyed(self) -> bool:
        """Report whether ``destroy`` has been called.

        :returns: ``True`` after the first ``destroy``.
        """
        return self._destroyed.load()

    def borrow(self) -> int:
        """Register one in-flight call and return a cloned native pointer.

        Every successful borrow must be paired with ``release``.

        :returns: Pointer valid until the matching ``release``.
        :raises HandleDestroyedError: If the native object was already freed.
        :raises HandleOverflowError: If the call counter would overflow.
        """
        while True:
            counter: int = self._call_counter.load()
            # destroy() with borrows still in flight leaves the counter at >= 0
            if counter <= -1 or self._destroyed.load() is True:
                raise HandleDestroyedError(f"{self._type_name} object has already been destroyed")
            if counter == COUNTER_MAX:
                raise HandleOverflowError(f"{self._type_name} object call counter would overflow")
            swapped: bool = self._call_counter.compare_and_swap(counter, counter + 1)
            if swapped is True:
                break

        try:
            cloned: int | None = self._bridge.call(self._clone_symbol, self._pointer)
        except BaseException:
            self.release()
            raise
        return int(cloned or 0)

    def release(self) -> None:
        """Finish one in-flight call, freeing the object on the last release."""
        remaining: int = self._call_counter.add_and_get(-1)
        if remaining == -1:
            self._free()

    def destroy(self) -> None:
        """Drop the host's own reference; repeated calls do nothing."""
        first: bool = self._destroyed.compare_and_swap(False, True)
        if first is False:
            return
        remaining: int = self._call_counter.add_and_get(-1)
        if remaining == -1:
            self._free()

    @contextmanager
    def hold(self) -> Iterator[int]:
        """Borrow for the duration of a ``with`` block.

        :yields: Cloned native pointer.
        """
        pointer: int = self.borrow()
        try:
            yield pointer
        finally:
            self.release()

    def _free(self) -> None:
        logger.debug("Freeing %s object at 0x%x", self._type_name, self._pointer)
        self._bridge.call(self._free_symbol, self._pointer)

    def __repr__(self) -> str:
        return f"<NativeHandle {self._type_name} 0x{self._pointer:x} calls={self.call_counter}>"
