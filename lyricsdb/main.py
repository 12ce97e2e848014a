"""
HTTP entrypoints for the transcription pipeline.

This module exposes a Flask app with two pipeline endpoints:

* ``POST /upload`` – stores a multipart ``file`` in the uploads directory.
* ``POST /process`` – stores the uploaded file and runs it through the
  whole pipeline (convert, extract metadata, upload to Cloud Storage,
  transcribe), returning the track metadata and its transcript.

Configuration is read once from the environment (see
:mod:`lyricsdb.config`) unless a :class:`~lyricsdb.config.PipelineConfig`
is passed to :func:`create_app`.
"""

import json
import logging
import os
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.utils import secure_filename

from . import tasks
from .config import PipelineConfig
from .errors import ConfigError, PersistenceError, PipelineError, RecognitionError, TranscodeError, UploadError
from .storage_service import StorageUploader
from .stt_service import Transcriber


MAX_UPLOAD_BYTES = 40 << 20


class BadUpload(Exception):
    pass


def save_upload(uploads_dir) -> str:
    """Save the request's ``file`` part into ``uploads_dir`` and return its path."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise BadUpload("Missing 'file' in request")
    filename = secure_filename(upload.filename)
    if not filename:
        raise BadUpload(f"Invalid file name {upload.filename!r}")
    os.makedirs(uploads_dir, exist_ok=True)
    path = os.path.join(str(uploads_dir), filename)
    upload.save(path)
    logging.info(json.dumps({"event": "file_uploaded", "path": path}))
    return path


def _status_for(exc: PipelineError) -> int:
    if isinstance(exc, TranscodeError):
        return 400
    if isinstance(exc, (UploadError, RecognitionError)):
        return 502
    return 500


def create_app(
    config: Optional[PipelineConfig] = None,
    *,
    uploader: Optional[StorageUploader] = None,
    transcriber: Optional[Transcriber] = None,
) -> Flask:
    config = config or PipelineConfig.from_env()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES
    services = {"uploader": uploader, "transcriber": transcriber}

    def _uploader() -> StorageUploader:
        if services["uploader"] is None:
            services["uploader"] = StorageUploader(config)
        return services["uploader"]

    def _transcriber() -> Transcriber:
        if services["transcriber"] is None:
            services["transcriber"] = Transcriber(config)
        return services["transcriber"]

    @app.route("/healthz", methods=["GET"])
    def healthz():
        return "OK", 200

    @app.route("/upload", methods=["POST"])
    def upload_file():
        try:
            path = save_upload(config.uploads_dir)
        except BadUpload as exc:
            logging.info(json.dumps({"event": "bad_upload", "reason": str(exc)}))
            return jsonify({"error": str(exc)}), 400
        return jsonify({"filename": path}), 200

    @app.route("/process", methods=["POST"])
    def process():
        try:
            path = save_upload(config.uploads_dir)
        except BadUpload as exc:
            logging.info(json.dumps({"event": "bad_upload", "reason": str(exc)}))
            return jsonify({"error": str(exc)}), 400

        logging.info(json.dumps({"event": "start_pipeline", "file": path}))
        try:
            outcome = tasks.prepare(path, config)
            tasks.transcribe_processed(outcome, config, uploader=_uploader(), transcriber=_transcriber())
        except PersistenceError as exc:
            logging.error(json.dumps({"event": "persistence_error", "file": path, "error": str(exc)}))
            body = {"error": str(exc)}
            if exc.transcript_json:
                body["transcript"] = json.loads(exc.transcript_json)
            return jsonify(body), 500
        except ConfigError as exc:
            logging.error(json.dumps({"event": "config_error", "error": str(exc)}))
            return jsonify({"error": str(exc)}), 500
        except PipelineError as exc:
            logging.error(
                json.dumps({"event": "stage_error", "file": path, "stage": exc.stage.value, "error": str(exc)})
            )
            return jsonify({"error": str(exc), "stage": exc.stage.value}), _status_for(exc)
        except Exception as exc:  # pragma: no cover
            logging.exception("Error in /process")
            return jsonify({"error": f"Server error: {exc}"}), 500

        logging.info(json.dumps({"event": "transcript_saved", "file": outcome.metadata.filename}))
        return jsonify({
            "metadata": outcome.metadata.to_dict(),
            "transcript": json.loads(outcome.transcript_json),
            "warnings": outcome.warnings,
        }), 200

    return app


if __name__ == "__main__":
    _config = PipelineConfig.from_env()
    logging.basicConfig(level=_config.log_level, format="%(message)s")
    port = int(os.environ.get("PORT", 8080))
    create_app(_config).run(host="0.0.0.0", port=port)
