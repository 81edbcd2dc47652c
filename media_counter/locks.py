import threading


class KeyedLock:
    """Runs callables one at a time per key, in the order they were submitted.

    Each key maps to the Event of the last operation scheduled for it. A new
    operation registers its own Event and waits for the previous one to be
    set, so operations on the same key form a FIFO chain while different
    keys never wait on each other. The Event is set whether the operation
    returns or raises.
    """

    def __init__(self):
        self._mutex = threading.Lock()
        self._chains = {}

    def with_lock(self, key, fn):
        done = threading.Event()
        with self._mutex:
            prev = self._chains.get(key)
            self._chains[key] = done

        try:
            if prev is not None:
                prev.wait()
            return fn()
        finally:
            done.set()
            with self._mutex:
                if self._chains.get(key) is done:
                    del self._chains[key]

    def pending(self, key):
        with self._mutex:
            return self._chains.get(key)

    def pending_keys(self):
        with self._mutex:
            return list(self._chains)
