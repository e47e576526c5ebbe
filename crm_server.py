#!/usr/bin/env python3
"""
CRM Board Server
----------------
Persists the CRM board as a single JSON document and serves it over HTTP.

Usage:
    python crm_server.py
    python crm_server.py --db ./db.json --port 3001

API:
    GET  /api/data      → JSON: the whole board document
    POST /api/data      → JSON body: { cards, columns, columnOrder }
                          Replaces the document. 400 if a key is missing.
    GET  /api/template  → CSV import template (header row only)
    GET  /health        → JSON: { status, db }
"""

import argparse
import logging
import sys
import threading

from flask import Flask, Response, jsonify, request

from pkg.crm.config import Config, ConfigError
from pkg.crm.importer import TEMPLATE_FILENAME, export_template
from pkg.crm.schema import BoardData, validate_board
from pkg.crm.store import DocumentStore, StoreError, has_required_keys

logger = logging.getLogger("crm_server")


def create_app(cfg: Config, store: DocumentStore = None) -> Flask:
    """
    Build the Flask app around a loaded document.

    Raises StoreError when an existing document cannot be read: starting with
    the default board would overwrite real data on the next save.
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = cfg.max_body_mb * 1024 * 1024

    store = store or DocumentStore(cfg.db_path)
    state = {"document": store.load()}
    lock = threading.Lock()

    # ── CORS ─────────────────────────────────────────────────────────────────
    # The board UI is served from a different origin than the API.

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return response

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/api/data", methods=["GET"])
    def api_data_get():
        with lock:
            return jsonify(state["document"])

    @app.route("/api/data", methods=["POST"])
    def api_data_set():
        data = request.get_json(force=True, silent=True)
        if not has_required_keys(data):
            return jsonify({"error": "Invalid data structure"}), 400

        if cfg.strict_validation:
            try:
                problems = validate_board(BoardData.from_dict(data))
            except (AttributeError, TypeError, ValueError) as e:
                problems = [f"malformed document: {e}"]
            if problems:
                app.logger.warning(f"Rejected board write: {len(problems)} problem(s)")
                return jsonify({"error": "Invalid board", "problems": problems}), 400

        with lock:
            state["document"] = data
            saved = store.save(data)

        if not saved and cfg.report_save_failures:
            return jsonify({"error": "Failed to persist data"}), 500
        return jsonify({"message": "Data saved successfully"}), 200

    @app.route("/api/template")
    def api_template():
        return Response(
            export_template(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={TEMPLATE_FILENAME}"},
        )

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": str(store.db_path)})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="CRM Board Server")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to db.json (overrides CRM_DB env var)")
    parser.add_argument("--strict", action="store_true",
                        help="Reject documents with dangling or duplicate card ids")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [crm_server] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        cfg = Config.load(args.config)
        if args.db:
            cfg.db_path = args.db
            cfg.resolve_paths()
        if args.host:
            cfg.host = args.host
        if args.port:
            cfg.port = args.port
        if args.strict:
            cfg.strict_validation = True
        cfg.validate()
        app = create_app(cfg)
    except (ConfigError, StoreError) as e:
        logger.error(str(e))
        return 1

    print(f"""
╔═══════════════════════════════════════╗
║  CRM Board Server                     ║
╠═══════════════════════════════════════╣
║  URL:  http://{cfg.host}:{cfg.port:<20}║
║  DB:   {cfg.db_path:<31}║
╚═══════════════════════════════════════╝
""")

    app.run(host=cfg.host, port=cfg.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
