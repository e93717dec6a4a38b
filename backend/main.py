"""
JSON-over-HTTP server for the anomaly detection service.

Endpoints:
- GET  /health
- POST /series/upload        multipart file (CSV / JSON / NDJSON) -> file_id
- POST /anomalies/detect     {file_id | series, options} -> result + alerts
- POST /anomalies/realtime   {point, history, options}
- POST /anomalies/batch      {datasets: [...]}
- POST /anomalies/configs    {user_id, name, data_source, config}
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import time
import uuid
from email import policy
from email.parser import BytesParser
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError

from backend.storage import InMemoryAnomalyDetectionStore
from llm import LLMConfig, LocalTextCompletionModel
from src.anomaly import AnomalyDetectionService, TimeSeriesPoint, generate_alerts
from src.core.config import config
from src.core.exceptions import AnomalyDetectionError, DataValidationError, StorageError
from src.core.logging_config import setup_logging
from src.data import load_series

load_dotenv()

logger = logging.getLogger("backend")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

UPLOADS: Dict[str, List[TimeSeriesPoint]] = {}
SERVICE: Optional[AnomalyDetectionService] = None


def _detection_service() -> AnomalyDetectionService:
    """Build the process-wide service on first use."""
    global SERVICE
    if SERVICE is None:
        model_path = os.getenv("MODEL_PATH")
        text_client = None
        if model_path:
            logger.info("ai_detection backed by local model %s", model_path)
            text_client = LocalTextCompletionModel(config=LLMConfig(model_path=model_path))
        else:
            logger.warning("MODEL_PATH is not set; ai_detection will use the z-score fallback")
        SERVICE = AnomalyDetectionService(text_client=text_client, store=InMemoryAnomalyDetectionStore())
    return SERVICE


def _multipart_files(content_type: str, body: bytes) -> Dict[str, Tuple[str, bytes]]:
    """
    Uploaded parts of a multipart/form-data body, keyed by form field name.

    Returns (filename, raw bytes) per field.
    """
    message = BytesParser(policy=policy.HTTP).parsebytes(
        f"Content-Type: {content_type}\r\n\r\n".encode("latin-1") + body
    )
    if not message.is_multipart():
        raise DataValidationError("Malformed multipart body")

    files: Dict[str, Tuple[str, bytes]] = {}
    for part in message.iter_parts():
        field = part.get_param("name", header="content-disposition")
        if field:
            files[field] = (part.get_filename() or "", part.get_payload(decode=True) or b"")
    return files


class BackendHandler(BaseHTTPRequestHandler):
    server_version = "SeriesSentinel/1.0"

    def _send_json(self, status: int, payload: Dict[str, Any]) -> None:
        body = json.dumps(payload, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        for header, value in CORS_HEADERS.items():
            self.send_header(header, value)
        self.end_headers()
        self.wfile.write(body)

    def _body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError as exc:
            raise DataValidationError("Invalid Content-Length header") from exc
        return self.rfile.read(length) if length > 0 else b""

    def _json_body(self) -> Dict[str, Any]:
        raw = self._body()
        if not raw:
            return {}
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DataValidationError(f"Request body is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise DataValidationError("Request body must be a JSON object")
        return payload

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        for header, value in CORS_HEADERS.items():
            self.send_header(header, value)
        self.end_headers()

    def do_GET(self) -> None:
        if self.path != "/health":
            self._send_json(404, {"detail": "Not found"})
            return
        self._send_json(200, {"status": "ok"})

    def do_POST(self) -> None:
        routes: Dict[str, Callable[[], None]] = {
            "/series/upload": self._upload_series,
            "/anomalies/detect": self._detect,
            "/anomalies/realtime": self._detect_realtime,
            "/anomalies/batch": self._detect_batch,
            "/anomalies/configs": self._save_config,
        }
        route = routes.get(self.path)
        if route is None:
            self._send_json(404, {"detail": "Not found"})
            return

        try:
            route()
        except StorageError as exc:
            logger.exception("Storage failure on %s", self.path)
            self._send_json(500, {"detail": str(exc)})
        except (AnomalyDetectionError, ValidationError) as exc:
            self._send_json(400, {"detail": str(exc)})

    def _upload_series(self) -> None:
        content_type = self.headers.get("Content-Type", "")
        if not content_type.startswith("multipart/form-data"):
            self._send_json(400, {"detail": "Expected multipart/form-data"})
            return

        files = _multipart_files(content_type, self._body())
        if "file" not in files:
            self._send_json(400, {"detail": "Missing file field"})
            return

        filename, data = files["file"]
        file_id = uuid.uuid4().hex
        target = config.logs_dir / f"upload_{file_id}{Path(filename).suffix or '.csv'}"
        target.write_bytes(data)

        points, skipped = load_series(target)
        UPLOADS[file_id] = points
        logger.info("Stored upload %s (%d points, %d skipped)", file_id, len(points), skipped)

        self._send_json(200, {"file_id": file_id, "row_count": len(points), "skipped_rows": skipped})

    def _detect(self) -> None:
        payload = self._json_body()
        if "file_id" in payload:
            series = UPLOADS.get(payload["file_id"])
            if series is None:
                self._send_json(404, {"detail": f"Unknown file_id: {payload['file_id']}"})
                return
        else:
            series = payload.get("series") or []

        started = time.perf_counter()
        result = asyncio.run(_detection_service().detect_anomalies(series, payload.get("options")))
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        self._send_json(
            200,
            {
                "result": result.model_dump(mode="json"),
                "alerts": [alert.model_dump(mode="json") for alert in generate_alerts(result.anomalies)],
                "detection_time_ms": elapsed_ms,
            },
        )

    def _detect_realtime(self) -> None:
        payload = self._json_body()
        if "point" not in payload:
            self._send_json(400, {"detail": "Missing point"})
            return

        result = _detection_service().detect_realtime_anomaly(
            payload["point"], payload.get("history") or [], payload.get("options")
        )
        self._send_json(200, {"result": result.model_dump(mode="json")})

    def _detect_batch(self) -> None:
        datasets = self._json_body().get("datasets")
        if not isinstance(datasets, list):
            self._send_json(400, {"detail": "Expected a datasets list"})
            return

        results = asyncio.run(_detection_service().batch_detect_anomalies(datasets))
        self._send_json(200, {"results": [r.model_dump(mode="json") for r in results]})

    def _save_config(self) -> None:
        payload = self._json_body()
        missing = [k for k in ("user_id", "name", "data_source") if not payload.get(k)]
        if missing:
            self._send_json(400, {"detail": f"Missing fields: {', '.join(missing)}"})
            return

        record = asyncio.run(
            _detection_service().save_anomaly_detection_config(
                payload["user_id"], payload["name"], payload["data_source"], payload.get("config") or {}
            )
        )
        self._send_json(200, {"record": record.model_dump(mode="json")})


def serve(host: str, port: int) -> None:
    _detection_service()
    server = ThreadingHTTPServer((host, port), BackendHandler)
    logger.info("Listening on http://%s:%s", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Time-series anomaly detection HTTP server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    setup_logging()
    serve(args.host, args.port)


if __name__ == "__main__":
    main()
