from pymongo import MongoClient, ReturnDocument

from .base import StoreError, record_from

DOC_ID = "counters"


class MongoStore:
    name = "mongo"

    def __init__(self, collection, locks, client=None):
        self.collection = collection
        self.locks = locks
        self.client = client
        self.lock_key = f"mongo:{collection.full_name}"

    @classmethod
    def from_settings(cls, settings, locks):
        if not settings.mongodb_uri:
            raise StoreError("MONGODB_URI is not set")

        client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
        client.admin.command("ping")
        if settings.mongodb_db:
            db = client[settings.mongodb_db]
        else:
            db = client.get_default_database(default="media_counter")
        return cls(db[settings.mongodb_collection], locks, client=client)

    def read(self):
        return record_from(self.collection.find_one({"_id": DOC_ID}))

    def apply(self, name, delta):
        def op():
            doc = self.collection.find_one_and_update(
                {"_id": DOC_ID},
                {"$inc": {name: delta}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
            return record_from(doc), True

        return self.locks.with_lock(self.lock_key, op)

    def close(self):
        if self.client is not None:
            self.client.close()
