import logging
import math

from flask import Flask, Response, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from catalog import fetch_font_catalog
from config import Settings
from errors import CertEngineError, ValidationError
from overlay import Placement, TextStyle, check_color
from pipeline import GenerationRequest, UploadedFile, prepare_batch, stream_certificates

logger = logging.getLogger(__name__)


def _uploaded(field_name):
    storage = request.files.get(field_name)
    if storage is None or not storage.filename:
        return None
    return UploadedFile(data=storage.read(), filename=storage.filename, mimetype=storage.mimetype)


def _number(field_name):
    raw = request.form.get(field_name, "")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Field '{field_name}' must be a number.") from None
    if not math.isfinite(value):
        raise ValidationError(f"Field '{field_name}' must be a number.")
    return value


def _read_generation_request():
    template = _uploaded("template")
    name_list = _uploaded("csv")
    if template is None or name_list is None:
        raise ValidationError("Missing template image or CSV file.")

    font_size = _number("fontSize")
    if font_size <= 0:
        raise ValidationError("Field 'fontSize' must be greater than zero.")

    return GenerationRequest(
        template=template,
        name_list=name_list,
        placement=Placement(x=_number("x"), y=_number("y")),
        style=TextStyle(
            font_size=font_size,
            color=check_color(request.form.get("fontColor", "").strip() or "#000000"),
        ),
        font_family=request.form.get("fontFamily", ""),
        custom_font=_uploaded("customFont"),
        font_url=request.form.get("fontUrl") or None,
    )


def list_fonts():
    settings = current_app.config["CERT_SETTINGS"]
    return jsonify(fetch_font_catalog(settings))


def generate():
    logger.info("--- Generation request received ---")
    settings = current_app.config["CERT_SETTINGS"]

    # 1. Everything that can fail the whole request happens before streaming
    gen_request = _read_generation_request()
    batch = prepare_batch(gen_request, settings)

    # 2. Stream the archive while it is being written
    return Response(
        stream_certificates(batch),
        mimetype="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{settings.archive_filename}"'},
    )


def health():
    return jsonify({"status": "ok"})


def handle_cert_error(error):
    if error.status_code >= 500:
        logger.error(f"Request failed: {error.message}")
    return jsonify({"error": error.message}), error.status_code


def handle_too_large(error):
    return jsonify({"error": "Uploaded files are too large."}), 413


def handle_internal_error(error):
    logger.error(f"Unhandled error: {getattr(error, 'original_exception', error)}")
    return jsonify({"error": "Internal server error."}), 500


def create_app(settings=None):
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["CERT_SETTINGS"] = settings
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    CORS(app, origins=list(settings.allowed_origins), methods=["GET", "POST"], supports_credentials=True)

    app.add_url_rule("/api/fonts", view_func=list_fonts, methods=["GET"])
    app.add_url_rule("/generate", view_func=generate, methods=["POST"])
    app.add_url_rule("/health", view_func=health, methods=["GET"])

    app.register_error_handler(CertEngineError, handle_cert_error)
    app.register_error_handler(RequestEntityTooLarge, handle_too_large)
    app.register_error_handler(500, handle_internal_error)
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    app = create_app(settings)
    logger.info(f"Backend running on port {settings.port}")
    app.run(host="0.0.0.0", port=settings.port)
