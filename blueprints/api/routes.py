"""
blueprints/api/routes.py — REST API endpoints for the IPA re-signing service.

Routes:
    POST  /analyze
    POST  /resign
    GET   /download/<uuid>/<filename>
    GET   /health
"""
import os
import logging

from flask import current_app, request, jsonify, send_file

from blueprints.api import api_bp
from extensions import get_orchestrator
from resigner.errors import ResignerError, InvalidArtifactName
from resigner.store import validate_download_name

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".ipa": "application/octet-stream",
    ".plist": "application/xml",
}


# ── Helpers ────────────────────────────────────────────────────────────────────

def _error(exc: ResignerError):
    return jsonify(exc.to_dict()), exc.status_code


def _internal_error(exc: Exception, context: str):
    logger.error("%s error: %s", context, exc, exc_info=True)
    return jsonify({"error": f"Internal {context.lower()} error"}), 500


# ── Routes ──────────────────────────────────────────────────────────────────────

@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "version": current_app.config.get("VERSION", "1.0.0")}), 200


@api_bp.route("/analyze", methods=["POST"])
def analyze():
    """POST /analyze — fetch an IPA by URL and report its bundle id and name."""
    ipa_url = request.form.get("ipa_url", "").strip()
    if not ipa_url:
        return jsonify({"error": "Missing ipa_url parameter"}), 400

    try:
        return jsonify(get_orchestrator().analyze(ipa_url)), 200
    except ResignerError as e:
        return _error(e)
    except Exception as e:
        return _internal_error(e, "Analysis")


@api_bp.route("/resign", methods=["POST"])
def resign():
    """POST /resign — sign an analyzed (ipa_uuid) or remote (ipa_url) IPA."""
    ipa_uuid = request.form.get("ipa_uuid", "").strip()
    ipa_url = request.form.get("ipa_url", "").strip()
    if not ipa_uuid and not ipa_url:
        return jsonify({"error": "Either ipa_url or ipa_uuid must be provided"}), 400

    p12 = request.files.get("p12")
    if p12 is None:
        return jsonify({"error": "Missing p12 file"}), 400
    mobileprovision = request.files.get("mobileprovision")
    if mobileprovision is None:
        return jsonify({"error": "Missing mobileprovision file"}), 400

    try:
        result = get_orchestrator().resign(
            p12,
            mobileprovision,
            request.form.get("p12_password", ""),
            identifier=ipa_uuid or None,
            origin_url=ipa_url or None,
            bundle_id=request.form.get("bundle_id", "").strip() or None,
            app_name=request.form.get("app_name", "").strip() or None,
        )
        return jsonify(result), 200
    except ResignerError as e:
        return _error(e)
    except Exception as e:
        return _internal_error(e, "Signing")


@api_bp.route("/download/<ipa_uuid>/<filename>", methods=["GET"])
def download(ipa_uuid: str, filename: str):
    """GET /download/<uuid>/<filename> — serve a stored artifact."""
    try:
        validate_download_name(filename)
    except InvalidArtifactName as e:
        return _error(e)

    store = get_orchestrator().store
    if not store.exists(ipa_uuid, filename):
        return jsonify({"error": "File not found"}), 404

    path = os.path.abspath(store.path_for(ipa_uuid, filename))
    ext = os.path.splitext(filename)[1]
    mimetype = CONTENT_TYPES.get(ext, "application/octet-stream")
    return send_file(
        path,
        mimetype=mimetype,
        as_attachment=ext == ".ipa",
        download_name=filename,
    )
