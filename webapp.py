"""Flask based HTTP interface for the travel insurance quote agent."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from flask import Flask, jsonify, request, url_for

from catalog_repository import CatalogRecord, CatalogRepository, RefreshTaskRecord
from quote_core import (
    CatalogBuildResult,
    MalformedInputError,
    Settings,
    build_catalog_snapshot,
    build_submission,
    load_settings,
    run_purchase_form,
    run_quote,
)

LOGGER = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = Flask(__name__)


class RefreshManager:
    """Runs catalog rebuilds in the background and records their outcome."""

    def __init__(
        self,
        repository: CatalogRepository,
        settings: Settings,
        build_fn: Callable[[Settings], CatalogBuildResult] = build_catalog_snapshot,
        max_workers: int = 1,
    ) -> None:
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.repository = repository
        self.settings = settings
        self.build_fn = build_fn

    def submit(self) -> RefreshTaskRecord:
        task_id = uuid4().hex
        record = RefreshTaskRecord(id=task_id, status="queued", created_at=datetime.utcnow())

        def _runner() -> None:
            self.repository.update_status(task_id, "running")
            try:
                result = self.build_fn(self.settings)
                if result.success and result.catalog is not None:
                    saved = self.repository.save(result.catalog)
                    self.repository.update_result(task_id, saved.id)
                else:
                    self.repository.update_error(task_id, result.error or "Catalog build failed", result.error_kind)
            except Exception as exc:  # pragma: no cover - runtime safeguard
                LOGGER.exception("Catalog refresh %s failed", task_id)
                self.repository.update_error(task_id, str(exc), "error")

        self.repository.create_task(record)
        self.executor.submit(_runner)
        return record

    def get(self, task_id: str) -> Optional[RefreshTaskRecord]:
        return self.repository.get_task(task_id)


settings = load_settings()
catalog_repository = CatalogRepository(settings.catalog_db_path)
refresh_manager = RefreshManager(catalog_repository, settings)


def current_catalog() -> Optional[CatalogRecord]:
    """Latest stored catalog, importing the newest catalog file when none is stored."""

    record = catalog_repository.latest()
    if record is not None:
        return record
    try:
        return catalog_repository.import_latest_file(settings.data_dir)
    except MalformedInputError as exc:
        LOGGER.warning("Ignoring catalog file: %s", exc)
        return None


def _request_payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    form_data = request.form.to_dict(flat=False)
    return {key: values if len(values) > 1 else values[0] for key, values in form_data.items()}


@app.route("/catalog")
def get_catalog():
    record = current_catalog()
    if record is None:
        return jsonify({"error": "No catalog available"}), 404
    return jsonify(record.catalog.to_dict())


@app.route("/catalog/refresh", methods=["POST"])
def refresh_catalog():
    record = refresh_manager.submit()
    status_url = url_for("task_status", task_id=record.id, _external=True)
    return jsonify({"taskId": record.id, "statusUrl": status_url}), 202


@app.route("/api/status/<task_id>")
def task_status(task_id: str):
    task = refresh_manager.get(task_id)
    if not task:
        return jsonify({"error": "unknown task"}), 404
    return jsonify(task.to_dict())


@app.route("/quote", methods=["POST"])
def quote():
    record = current_catalog()
    result = run_quote(_request_payload(), record.catalog if record else None, settings)
    return jsonify(result.to_dict()), result.status_code


@app.route("/purchase-form", methods=["POST"])
def purchase_form():
    payload = _request_payload()
    result = run_purchase_form(payload.get("planId"), payload.get("quoteUrl"), settings)
    return jsonify(result.to_dict()), result.status_code


@app.route("/purchase-form/submission", methods=["POST"])
def purchase_form_submission():
    result = build_submission(_request_payload())
    return jsonify(result.to_dict()), result.status_code


if __name__ == "__main__":
    app.run(debug=True)
