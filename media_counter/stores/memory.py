from .base import empty_record


class MemoryStore:
    name = "mem"
    lock_key = "mem"

    def __init__(self, locks, initial=None):
        self.locks = locks
        self._data = empty_record()
        if initial:
            self._data.update(initial)

    def read(self):
        return dict(self._data)

    def apply(self, name, delta):
        def op():
            self._data[name] = self._data.get(name, 0) + delta
            return dict(self._data), True

        return self.locks.with_lock(self.lock_key, op)

    def close(self):
        pass
