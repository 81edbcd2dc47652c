COUNTERS = ("video", "photo")


class StoreError(Exception):
    pass


def empty_record():
    return {name: 0 for name in COUNTERS}


def record_from(doc):
    if doc is None:
        return empty_record()
    if not isinstance(doc, dict):
        raise StoreError(f"counter record must be an object, got {type(doc).__name__}")
    return {name: int(doc.get(name) or 0) for name in COUNTERS}
