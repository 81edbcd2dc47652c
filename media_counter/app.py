import re

from flask import Flask, jsonify, render_template, request

from .config import Settings
from .locks import KeyedLock
from .logs import logger, log_json, setup_logging
from .stores import COUNTERS, make_store

INT_RE = re.compile(r"-?[0-9]+")


def parse_delta(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        value = value.strip()
        return int(value) if INT_RE.fullmatch(value) else None
    return None


def create_app(settings=None, store=None):
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    # one lock registry per process, owned by whoever writes to storage
    locks = KeyedLock()
    if store is None:
        store = make_store(settings, locks)
    app.extensions["counter_store"] = store
    log_json(logger.info, {"event": "storage_selected", "storage": store.name})

    @app.get("/")
    def index():
        return render_template("index.html", counters=store.read(), names=COUNTERS)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "storage": store.name}, 200

    @app.get("/counter")
    @app.get("/api/counter")
    def get_counters():
        try:
            return jsonify(store.read())
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_json(logger.error, {"event": "api_error", "method": "GET", "error": f"{type(e).__name__}: {e}"})
            return jsonify(error="Internal server error"), 500

    @app.post("/counter")
    @app.post("/api/counter")
    def update_counter():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}

        key = str(body.get("key") or "")
        if key not in COUNTERS:
            return jsonify(error="Invalid key"), 400

        raw = body.get("delta")
        delta = 0 if raw is None else parse_delta(raw)
        if delta is None:
            return jsonify(error="Invalid delta"), 400

        try:
            counters, persisted = store.apply(key, delta)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_json(logger.error, {"event": "api_error", "method": "POST", "key": key, "error": f"{type(e).__name__}: {e}"})
            return jsonify(error="Internal server error"), 500

        log_json(logger.info, {"event": "counter_updated", "key": key, "delta": delta, "value": counters[key]})
        payload = dict(counters)
        if not persisted:
            payload["_persisted"] = False
        return jsonify(payload)

    return app


def main():
    settings = Settings.from_env()
    app = create_app(settings)

    from waitress import serve
    try:
        serve(app, host=settings.host, port=settings.port, threads=settings.threads)
    finally:
        app.extensions["counter_store"].close()


if __name__ == "__main__":
    main()
