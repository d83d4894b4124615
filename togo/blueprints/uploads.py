from flask import Blueprint, current_app, jsonify, request, send_from_directory

from ..errors import BadRequest
from ..schemas import PlaceImageUpload
from ..services import image_service
from ..utils import login_required

uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.get("/uploads/<path:filename>")
def uploaded_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)


@uploads_bp.post("/api/place-images/upload")
@login_required
def upload_place_image():
    """Accepts a cropped image as a data URL and stores two JPEG sizes."""
    data = PlaceImageUpload.model_validate(request.get_json(silent=True) or {})
    standard, thumbnail = image_service.save_image_blob(
        data.image_blob, current_app.config["UPLOAD_FOLDER"], prefix="place"
    )
    return jsonify({"standardPath": standard, "thumbnailPath": thumbnail}), 201


@uploads_bp.post("/api/objects/upload")
@login_required
def upload_object():
    file = request.files.get("file")
    if file is None or not file.filename:
        raise BadRequest("No file uploaded")
    standard, thumbnail = image_service.save_image_file(
        file, current_app.config["UPLOAD_FOLDER"], prefix="upload"
    )
    return jsonify({"url": standard, "thumbnailUrl": thumbnail}), 201
