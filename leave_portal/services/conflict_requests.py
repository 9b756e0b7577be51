from __future__ import annotations

import itertools
import threading
from collections import OrderedDict
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_MAX_KEYS = 1024


@dataclass(frozen=True)
class GenerationToken:
    key: Hashable
    generation: int


@dataclass
class _KeyState(Generic[T]):
    generation: int
    result: T | None = None


class ConflictRequestTracker(Generic[T]):
    """Keep only the newest recomputation per caller key.

    Each call to ``begin`` supersedes every earlier token for the same key. A result is
    published only while its token is still the newest one; stale results are dropped and
    never merged with the current state.

    At most ``max_keys`` keys are remembered. The least recently started key is evicted
    first, and any token still outstanding for it can no longer publish.
    """

    def __init__(self, max_keys: int = DEFAULT_MAX_KEYS) -> None:
        if max_keys < 1:
            raise ValueError("max_keys must be positive")
        self.max_keys = max_keys
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._keys: OrderedDict[Hashable, _KeyState[T]] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def begin(self, key: Hashable) -> GenerationToken:
        with self._lock:
            generation = next(self._counter)
            state = self._keys.get(key)
            if state is None:
                self._keys[key] = _KeyState(generation=generation)
            else:
                state.generation = generation
                self._keys.move_to_end(key)
            while len(self._keys) > self.max_keys:
                self._keys.popitem(last=False)
            return GenerationToken(key=key, generation=generation)

    def is_current(self, token: GenerationToken) -> bool:
        with self._lock:
            state = self._keys.get(token.key)
            return state is not None and state.generation == token.generation

    def publish(self, token: GenerationToken, result: T) -> bool:
        with self._lock:
            state = self._keys.get(token.key)
            if state is None or state.generation != token.generation:
                return False
            state.result = result
            return True

    def current_result(self, key: Hashable) -> T | None:
        with self._lock:
            state = self._keys.get(key)
            return state.result if state is not None else None

    def discard(self, key: Hashable) -> None:
        with self._lock:
            self._keys.pop(key, None)
