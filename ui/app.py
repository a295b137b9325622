"""Local Flask JSON API for the SignalBoard stock signal dashboard."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from pathlib import Path
import sys
from typing import Any

from flask import Flask, got_request_exception, jsonify, request

# Make `python ui/app.py` work without external PYTHONPATH setup.
THIS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = THIS_DIR.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from config.settings import DATA_DIR, HOST, LOGS_DIR, PORT, PREFERENCES_PATH
from core.collaboration import ChatRoom, SuggestionBoard
from core.dashboard import DashboardController
from core.directory_scanner import DirectoryScanError, scan_directories
from core.models import StockRecord
from core.picks import PicksRegistry
from core.session import PreferenceFile, Session
from core.store import Store, create_store
from ui.api import (
    BadRequest,
    parse_dates,
    parse_int,
    parse_price_range,
    require_text,
    serialize_tree,
    table_payload,
)

MAX_PAGE = 1_000_000


def _configure_ui_logger(logs_dir: str | Path = LOGS_DIR) -> logging.Logger:
    """Configure the file logger shared by the app and core modules."""
    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    log_file = logs_path / "signalboard.log"

    logger = logging.getLogger("signalboard")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    existing = None
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            existing = handler
            break

    if existing is None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    return logger


def _warn_if_multi_worker(logger: logging.Logger) -> None:
    """Log warning when likely deployed with multiple workers/processes."""
    worker_envs = {
        "WEB_CONCURRENCY": os.getenv("WEB_CONCURRENCY"),
        "GUNICORN_WORKERS": os.getenv("GUNICORN_WORKERS"),
        "WORKERS": os.getenv("WORKERS"),
    }
    for key, raw_value in worker_envs.items():
        if raw_value is None:
            continue
        try:
            workers = int(raw_value)
        except ValueError:
            continue
        if workers > 1:
            logger.warning(
                "Detected %s=%s. Run with a single worker; table state and caches are per process.",
                key,
                raw_value,
            )
            return


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def create_app(
    store: Store | None = None,
    data_dir: str | Path | None = None,
    preferences_path: str | Path | None = None,
    logs_dir: str | Path | None = None,
) -> Flask:
    """Create and configure the local Flask application."""
    app = Flask(__name__)
    app.json.sort_keys = False

    logger = _configure_ui_logger(logs_dir if logs_dir is not None else LOGS_DIR)
    _warn_if_multi_worker(logger)

    store = store if store is not None else create_store()
    data_root = Path(data_dir if data_dir is not None else DATA_DIR)
    session = Session(PreferenceFile(preferences_path if preferences_path is not None else PREFERENCES_PATH))

    picks = PicksRegistry(store)
    controller = DashboardController(picks, data_root)
    chat = ChatRoom(store, session)
    board = SuggestionBoard(store, session)

    picks.mount()
    chat.mount()
    board.mount()
    controller.refresh()

    app.extensions["signalboard"] = {
        "store": store,
        "session": session,
        "picks": picks,
        "controller": controller,
        "chat": chat,
        "suggestions": board,
    }
    logger.info("UI app initialized (data root: %s)", data_root)

    @app.errorhandler(ValueError)
    def _bad_request(exc: ValueError):
        return _error(str(exc), 400)

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()})

    # Data tree and table -------------------------------------------------

    @app.route("/api/files")
    def list_files():
        """Fresh scan of the data folder."""
        try:
            nodes = scan_directories(data_root)
        except DirectoryScanError as exc:
            logger.error("Error reading directories: %s", exc)
            return _error("Failed to read directories", 500)
        return jsonify(serialize_tree(nodes))

    @app.route("/api/refresh", methods=["POST"])
    def refresh():
        controller.refresh()
        payload = table_payload(controller)
        payload.update(serialize_tree(controller.directories))
        return jsonify(payload)

    @app.route("/api/selection", methods=["GET"])
    def get_selection():
        return jsonify(table_payload(controller))

    @app.route("/api/selection", methods=["POST"])
    def select_file():
        payload = _json_body()
        controller.select_file(require_text(payload, "directory"), require_text(payload, "file"))
        controller.load()
        return jsonify(table_payload(controller))

    @app.route("/api/selection", methods=["DELETE"])
    def select_all_data():
        controller.select_all_data()
        controller.load()
        return jsonify(table_payload(controller))

    @app.route("/api/table")
    def table():
        return jsonify(table_payload(controller))

    @app.route("/api/table/filters", methods=["POST"])
    def update_filters():
        payload = _json_body()
        signal_type = payload.get("signalType")
        search = payload.get("search")
        if signal_type is not None and not isinstance(signal_type, str):
            raise BadRequest("signalType must be a string")
        if search is not None and not isinstance(search, str):
            raise BadRequest("search must be a string")
        controller.update_filters(
            signal_type=signal_type,
            search=search,
            dates=parse_dates(payload["dates"]) if "dates" in payload else None,
            price_range=parse_price_range(payload["priceRange"]) if "priceRange" in payload else None,
        )
        return jsonify(table_payload(controller))

    @app.route("/api/table/sort", methods=["POST"])
    def toggle_sort():
        controller.toggle_sort(require_text(_json_body(), "field"))
        return jsonify(table_payload(controller))

    @app.route("/api/table/page", methods=["POST"])
    def go_to_page():
        controller.go_to_page(parse_int(_json_body().get("page"), 1, 1, MAX_PAGE))
        return jsonify(table_payload(controller))

    # Picks ---------------------------------------------------------------

    def _picks_payload() -> dict[str, Any]:
        items = [pick.to_dict() for pick in picks.picks]
        return {"picks": items, "count": len(items)}

    @app.route("/api/picks")
    def list_picks():
        return jsonify(_picks_payload())

    @app.route("/api/picks/toggle", methods=["POST"])
    def toggle_pick():
        payload = _json_body()
        require_text(payload, "tickerName")
        record = StockRecord.from_payload(payload)
        if not picks.toggle(record):
            return _error("Failed to update picked stocks", 503)
        result = _picks_payload()
        result["isPicked"] = picks.is_picked(record)
        return jsonify(result)

    @app.route("/api/picks/<pick_id>", methods=["PATCH"])
    def set_priority(pick_id: str):
        if picks.get(pick_id) is None:
            return _error("Picked stock not found", 404)
        if not picks.set_priority(pick_id, require_text(_json_body(), "priority")):
            return _error("Failed to update priority", 503)
        return jsonify(_picks_payload())

    @app.route("/api/picks/<pick_id>", methods=["DELETE"])
    def remove_pick(pick_id: str):
        if picks.get(pick_id) is None:
            return _error("Picked stock not found", 404)
        if not picks.remove(pick_id):
            return _error("Failed to remove picked stock", 503)
        return jsonify(_picks_payload())

    # Chat ----------------------------------------------------------------

    def _chat_payload() -> dict[str, Any]:
        return {"messages": [message.to_dict() for message in chat.messages], "userName": session.user_name}

    @app.route("/api/chat", methods=["GET"])
    def chat_history():
        chat.reload()
        return jsonify(_chat_payload())

    @app.route("/api/chat", methods=["POST"])
    def send_message():
        payload = _json_body()
        user_name = payload.get("userName", session.user_name)
        message = payload.get("message")
        if not isinstance(user_name, str) or not user_name.strip():
            raise BadRequest("userName is required")
        if not isinstance(message, str) or not message.strip():
            raise BadRequest("message is required")
        if not chat.send(message, user_name):
            return _error("Failed to send message", 503)
        return jsonify(_chat_payload()), 201

    @app.route("/api/chat", methods=["DELETE"])
    def clear_chat():
        if _json_body().get("confirm") is not True:
            return _error("Deleting chat history requires confirmation", 400)
        if not chat.clear_history(True):
            return _error("Failed to delete chat history", 503)
        return jsonify(_chat_payload())

    # Suggestions ---------------------------------------------------------

    def _suggestions_payload() -> dict[str, Any]:
        items = []
        for suggestion in board.suggestions:
            item = suggestion.to_dict()
            item["expanded"] = board.is_expanded(suggestion.id)
            items.append(item)
        return {"suggestions": items, "count": len(items), "userName": session.user_name}

    def _author(payload: dict[str, Any]) -> str:
        user_name = payload.get("userName", session.user_name)
        if not isinstance(user_name, str) or not user_name.strip():
            raise BadRequest("userName is required")
        return user_name

    def _content(payload: dict[str, Any]) -> str:
        content = payload.get("content")
        if not isinstance(content, str) or not content.strip():
            raise BadRequest("content is required")
        return content

    @app.route("/api/suggestions", methods=["GET"])
    def list_suggestions():
        board.reload()
        return jsonify(_suggestions_payload())

    @app.route("/api/suggestions", methods=["POST"])
    def add_suggestion():
        payload = _json_body()
        if not board.add_suggestion(_content(payload), _author(payload)):
            return _error("Failed to add suggestion", 503)
        return jsonify(_suggestions_payload()), 201

    @app.route("/api/suggestions/<suggestion_id>/replies", methods=["POST"])
    def add_reply(suggestion_id: str):
        if board.get(suggestion_id) is None:
            return _error("Suggestion not found", 404)
        payload = _json_body()
        if not board.add_reply(suggestion_id, _content(payload), _author(payload)):
            return _error("Failed to add reply", 503)
        return jsonify(_suggestions_payload()), 201

    @app.route("/api/suggestions/<suggestion_id>", methods=["DELETE"])
    def delete_suggestion(suggestion_id: str):
        if board.get(suggestion_id) is None:
            return _error("Suggestion not found", 404)
        if _json_body().get("confirm") is not True:
            return _error("Deleting a suggestion requires confirmation", 400)
        if not board.delete_suggestion(suggestion_id, True):
            return _error("Failed to delete suggestion", 503)
        return jsonify(_suggestions_payload())

    @app.route("/api/suggestions/<suggestion_id>/expand", methods=["POST"])
    def toggle_expanded(suggestion_id: str):
        if board.get(suggestion_id) is None:
            return _error("Suggestion not found", 404)
        return jsonify({"id": suggestion_id, "expanded": board.toggle_expanded(suggestion_id)})

    # Session -------------------------------------------------------------

    @app.route("/api/session", methods=["GET"])
    def get_session():
        return jsonify({"userName": session.user_name})

    @app.route("/api/session", methods=["PUT"])
    def set_session():
        user_name = require_text(_json_body(), "userName").strip()
        if not user_name:
            raise BadRequest("userName must not be blank")
        session.remember(user_name)
        return jsonify({"userName": session.user_name})

    def _log_unhandled_exception(sender: Flask, exception: Exception, **_: Any) -> None:
        logger.exception("Unhandled UI exception: %s", exception)

    got_request_exception.connect(_log_unhandled_exception, app)

    return app


if __name__ == "__main__":
    create_app().run(host=HOST, port=PORT, debug=False)
