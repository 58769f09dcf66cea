"""HTTP API wrapper for the link-guard answer service."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from flask import Flask, Response, jsonify, request

from link_guard.assistant.answer import AskError, answer_question, parse_ask_body
from link_guard.assistant.interaction_log import InteractionLog, get_interaction_log
from link_guard.config import config, configure_logging
from link_guard.links.sanitizer import LinkSanitizer, get_link_sanitizer
from link_guard.llm.provider import get_llm

logger = logging.getLogger(__name__)

AskHandler = Callable[[dict[str, Any]], str]


class Metrics:
    """Minimal Prometheus-compatible in-process metrics store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sanitize_requests_total = 0
        self.ask_requests_total = 0
        self.ask_failures_total = 0
        self.ask_latency_sum_seconds = 0.0
        self.ask_latency_count = 0
        self.link_rewrites: dict[str, int] = {}

    def observe_sanitize(self, actions: list[str]) -> None:
        with self._lock:
            self.sanitize_requests_total += 1
            for action in actions:
                self.link_rewrites[action] = self.link_rewrites.get(action, 0) + 1

    def observe_ask(self, duration_seconds: float, ok: bool) -> None:
        with self._lock:
            self.ask_requests_total += 1
            self.ask_latency_sum_seconds += duration_seconds
            self.ask_latency_count += 1
            if not ok:
                self.ask_failures_total += 1

    def render_prometheus(self) -> str:
        with self._lock:
            lines = [
                "# HELP link_guard_sanitize_requests_total Total sanitize requests",
                "# TYPE link_guard_sanitize_requests_total counter",
                f"link_guard_sanitize_requests_total {self.sanitize_requests_total}",
                "# HELP link_guard_link_rewrites_total Link rewrites by action",
                "# TYPE link_guard_link_rewrites_total counter",
            ]
            for action, count in sorted(self.link_rewrites.items()):
                lines.append(f'link_guard_link_rewrites_total{{action="{action}"}} {count}')
            lines += [
                "# HELP link_guard_ask_requests_total Total ask requests",
                "# TYPE link_guard_ask_requests_total counter",
                f"link_guard_ask_requests_total {self.ask_requests_total}",
                "# HELP link_guard_ask_failures_total Total failed ask requests",
                "# TYPE link_guard_ask_failures_total counter",
                f"link_guard_ask_failures_total {self.ask_failures_total}",
                "# HELP link_guard_ask_latency_seconds_sum Ask latency sum in seconds",
                "# TYPE link_guard_ask_latency_seconds_sum counter",
                f"link_guard_ask_latency_seconds_sum {self.ask_latency_sum_seconds}",
                "# HELP link_guard_ask_latency_seconds_count Ask latency sample count",
                "# TYPE link_guard_ask_latency_seconds_count counter",
                f"link_guard_ask_latency_seconds_count {self.ask_latency_count}",
            ]
        return "\n".join(lines) + "\n"


def _default_ask_handler(sanitizer: LinkSanitizer) -> AskHandler:
    from link_guard.rag.store import GreenlistStore

    store: GreenlistStore | None = None

    def _retrieve(query: str, n_results: int) -> list[dict]:
        nonlocal store
        if store is None:
            store = GreenlistStore(
                persist_dir=config.rag.chroma_persist_dir,
                collection_name=config.rag.collection_name,
                embedding_model=config.rag.embedding_model,
            )
        return store.query_urls(query, n_results=n_results)

    def _handler(payload: dict[str, Any]) -> str:
        return answer_question(
            payload,
            retrieve=_retrieve,
            llm_factory=get_llm,
            sanitizer=sanitizer,
            top_k=config.rag.top_k,
            max_context_urls=config.rag.max_context_urls,
        )

    return _handler


def create_app(
    *,
    sanitizer_factory: Callable[[], LinkSanitizer] = get_link_sanitizer,
    ask_handler: AskHandler | None = None,
    interaction_log_factory: Callable[[], InteractionLog] = get_interaction_log,
) -> Flask:
    """Create Flask app exposing health, sanitize, ask and log endpoints."""
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.api.max_body_bytes
    metrics = Metrics()
    sanitizer = sanitizer_factory()
    ask = ask_handler or _default_ask_handler(sanitizer)

    @app.get("/healthz")
    def healthz() -> Response:
        return jsonify({"status": "ok"})

    @app.get("/readyz")
    def readyz() -> Response:
        return jsonify({"status": "ready", "debug": sanitizer.debug})

    @app.get("/metrics")
    def metrics_endpoint() -> Response:
        return Response(metrics.render_prometheus(), mimetype="text/plain; version=0.0.4")

    @app.post("/v1/sanitize")
    def sanitize() -> Response:
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not isinstance(body.get("text"), str):
            return jsonify({"error": "text_required"}), 400

        result = sanitizer.sanitize_with_trace(body["text"])
        metrics.observe_sanitize([d.action for d in result.rewrites])

        payload: dict[str, Any] = {"text": result.text}
        if sanitizer.debug and body.get("trace"):
            payload["decisions"] = result.trace(sanitizer.trace_limit)
        return jsonify(payload)

    @app.post("/v1/ask")
    def ask_endpoint() -> Response:
        started = time.perf_counter()
        ok = False
        try:
            payload = parse_ask_body(request.get_data(as_text=True))
            answer = ask(payload)
            ok = True
            return jsonify({"answer": answer})
        except AskError as exc:
            return jsonify({"error": str(exc)}), 400
        except Exception:
            logger.exception("/v1/ask failed")
            return jsonify({"error": "ask_failed"}), 500
        finally:
            metrics.observe_ask(time.perf_counter() - started, ok=ok)

    @app.post("/v1/log")
    def log_interaction() -> Response:
        body = request.get_json(silent=True) or {}
        user_input = body.get("user_input") if isinstance(body, dict) else None
        if not user_input or not isinstance(user_input, str):
            return jsonify({"ok": False, "error": "missing-user_input"}), 400

        timestamp = body.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            timestamp = None
        try:
            record_id = interaction_log_factory().append(
                user_input=user_input,
                answer=body.get("answer"),
                timestamp_ms=timestamp,
            )
        except (OSError, ValueError, OverflowError):
            logger.exception("/v1/log write failed")
            return jsonify({"ok": False, "error": "log-write-failed"}), 500
        return jsonify({"ok": True, "id": record_id}), 201

    @app.errorhandler(404)
    def not_found(_exc) -> Response:
        logger.warning("Unknown route hit: %s %s", request.method, request.path)
        return jsonify({"error": "not_found"}), 404

    return app


def main() -> None:
    """Run the HTTP API server."""
    configure_logging()
    app = create_app()
    app.run(
        host=config.api.host,
        port=config.api.port,
        debug=config.api.debug,
        threaded=True,
    )


if __name__ == "__main__":
    main()
