import threading


class ResolutionGate:
    """Compare-and-set gate allowing one resolution in flight at a time."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._held = False

    @property
    def held(self) -> bool:
        with self._mutex:
            return self._held

    def try_acquire(self) -> bool:
        """Take the gate. Returns False if it is already held."""
        with self._mutex:
            if self._held:
                return False
            self._held = True
            return True

    def release(self) -> None:
        """Open the gate. Releasing an open gate is a no-op."""
        with self._mutex:
            self._held = False
