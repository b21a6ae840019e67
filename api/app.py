"""Flask endpoint that mirrors per-date transaction buckets to a directory."""

from __future__ import annotations

from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from budget_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budget_core.models import Transaction, format_amount
from budget_core.settings import Settings
from budget_core.storage import JSONDirectoryBackend
from budget_core.store import BucketStore
from budget_core.validators import parse_amount, validate_date, validate_required_str


def create_app(data_dir: Optional[Path] = None, settings: Optional[Settings] = None) -> Flask:
    app = Flask(__name__)
    settings = settings or Settings.from_env()

    if settings.is_dev:
        CORS(app, resources={r"/*": {"origins": "*"}})
    elif settings.allowed_origins:
        CORS(app, resources={r"/*": {"origins": settings.allowed_origins}})
    else:
        CORS(app)

    buckets = BucketStore(JSONDirectoryBackend(Path(data_dir or settings.mirror_dir)))

    def _success(payload: Any, status: int = 200):
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Transaction file not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error")
        return jsonify({"error": str(exc)}), 500

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    @app.get("/api/transactions")
    def list_buckets():
        payload = {}
        for bucket_date in buckets.all_dates():
            try:
                bucket = buckets.get_bucket(bucket_date)
            except PersistenceError as exc:
                app.logger.warning("Skipping unreadable bucket %s: %s", bucket_date, exc)
                continue
            if bucket is not None:
                payload[bucket_date.isoformat()] = bucket.to_dict()
        return _success(payload)

    @app.post("/api/transactions")
    def save_transaction():
        body = _json_body()
        amount = parse_amount(body.get("amount"), "amount")
        validate_required_str(body.get("category"), "category", 50)
        validate_required_str(body.get("description"), "description", 200)
        try:
            transaction = Transaction.from_dict({**body, "amount": format_amount(amount)})
        except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as exc:
            raise ValidationError(f"Invalid transaction: {exc}") from exc
        buckets.append(transaction)
        app.logger.info("Transaction %s saved to %s", transaction.id, transaction.date.isoformat())
        return _success({"success": True, "message": "Transaction saved"})

    @app.delete("/api/transactions")
    def delete_transaction():
        body = _json_body()
        bucket_date = validate_date(body.get("date"), "date")
        transaction_id = validate_required_str(body.get("transactionId"), "transactionId", 100)
        buckets.remove_by_id(bucket_date, transaction_id)
        return _success({"success": True, "message": "Transaction deleted"})

    return app
