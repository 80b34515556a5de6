# Overview: Flask API routes for image recognition; returns review rows, never writes.

from flask import Blueprint, request, current_app

from ..validation import ValidationError

recognition_bp = Blueprint("recognition", __name__, url_prefix="/api/recognition")


@recognition_bp.post("/<kind>")
def recognize_route(kind: str):
    """
    Multipart upload: field "image".

    kind: product-extraction | sale-extraction | maleta-extraction | match-suggestion
    Returns 502 when the vision service fails or answers outside the schema.
    """
    from ..services.recognition_service import recognize, RecognitionError

    upload = request.files.get("image")
    if upload is None:
        return {"error": "image is required"}, 400

    try:
        result = recognize(kind, image=upload.read(), mime_type=upload.mimetype)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except RecognitionError as e:
        current_app.logger.warning("Recognition %s failed: %s", kind, e)
        return {"error": str(e)}, 502

    return result, 200
