import hazelcast

from .base import COUNTERS, record_from

MAP_NAME = "media-counter"


class HazelcastStore:
    """One map entry per counter; updates hold the entry's cluster lock."""

    name = "hazelcast"
    lock_key = f"hazelcast:{MAP_NAME}"

    def __init__(self, counters_map, locks, client=None):
        self.map = counters_map
        self.locks = locks
        self.client = client

    @classmethod
    def from_settings(cls, settings, locks):
        client = hazelcast.HazelcastClient(
            cluster_name=settings.hz_cluster_name,
            cluster_members=list(settings.hz_members),
            cluster_connect_timeout=5.0,
        )
        return cls(client.get_map(MAP_NAME).blocking(), locks, client=client)

    def read(self):
        return record_from(self.map.get_all(list(COUNTERS)))

    def apply(self, name, delta):
        def op():
            self.map.lock(name)
            try:
                v = self.map.get(name) or 0
                self.map.put(name, v + delta)
            finally:
                self.map.unlock(name)
            return self.read(), True

        return self.locks.with_lock(self.lock_key, op)

    def close(self):
        if self.client is not None:
            self.client.shutdown()
