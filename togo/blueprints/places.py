from flask import Blueprint, current_app, jsonify, request, session

from .. import database
from ..errors import Unauthorized
from ..schemas import PlaceCreate, PlaceFilters, PlaceUpdate
from ..services import image_service, place_service
from ..utils import current_user_id, form_to_payload, get_current_user, login_required, parse_bool

places_bp = Blueprint("places", __name__, url_prefix="/api")

CLEARABLE_FORM_FIELDS = ("address", "description", "instagramProfile")


def _read_payload():
    """Places accept either JSON or a multipart form with optional files."""
    if request.mimetype == "multipart/form-data" or request.form:
        return form_to_payload(request.form, nullable=CLEARABLE_FORM_FIELDS)
    return request.get_json(silent=True) or {}


def _store_uploads():
    """Persist uploaded main image / itinerary; return the resulting column values."""
    upload_folder = current_app.config["UPLOAD_FOLDER"]
    stored = {}

    image = request.files.get("mainImage")
    if image and image.filename:
        standard, thumbnail = image_service.save_image_file(image, upload_folder, prefix="place")
        stored["main_image"] = standard
        stored["thumbnail_image"] = thumbnail

    itinerary = request.files.get("itineraryFile")
    if itinerary and itinerary.filename:
        stored["itinerary_file"] = image_service.save_itinerary_file(itinerary, upload_folder)

    return stored


def _parse_filters():
    args = request.args
    raw = {}

    type_ids = []
    for value in args.getlist("typeIds"):
        type_ids.extend(part for part in value.split(",") if part.strip())
    if type_ids:
        raw["typeIds"] = type_ids

    for key in ("stateId", "cityId", "minRating", "search", "createdBy"):
        if args.get(key):
            raw[key] = args.get(key)
    for key in ("hasRodizio", "isVisited"):
        if args.get(key):
            raw[key] = parse_bool(args.get(key))

    if parse_bool(args.get("mine")):
        if current_user_id() is None:
            raise Unauthorized("Authentication required")
        raw["createdBy"] = current_user_id()

    return PlaceFilters.model_validate(raw)


@places_bp.get("/places")
def list_places():
    filters = _parse_filters()
    rows = place_service.list_places(database.get_db(), filters)
    return jsonify([place_service.place_to_dict(row) for row in rows])


@places_bp.get("/places/<int:place_id>")
def get_place(place_id):
    place = place_service.require_place(database.get_db(), place_id)
    return jsonify(place_service.place_to_dict(place))


@places_bp.post("/places")
@login_required
def create_place():
    data = PlaceCreate.model_validate(_read_payload())
    for column, value in _store_uploads().items():
        setattr(data, column, value)

    place = place_service.create_place(database.get_db(), data, session["user_id"])
    current_app.logger.info("User %s created place %s", session["user_id"], place["id"])
    return jsonify(place_service.place_to_dict(place)), 201


@places_bp.put("/places/<int:place_id>")
@login_required
def update_place(place_id):
    db = database.get_db()
    place = place_service.require_place(db, place_id)
    user = get_current_user()
    place_service.ensure_can_modify(place, user)

    data = PlaceUpdate.model_validate(_read_payload())
    changes = data.model_dump(exclude_unset=True)
    changes.update(_store_uploads())

    updated = place_service.update_place(db, place, changes, user["id"])
    current_app.logger.info("User %s updated place %s", user["id"], place_id)
    return jsonify(place_service.place_to_dict(updated))


@places_bp.delete("/places/<int:place_id>")
@login_required
def delete_place(place_id):
    db = database.get_db()
    place = place_service.require_place(db, place_id)
    user = get_current_user()
    place_service.ensure_can_modify(place, user)

    place_service.delete_place(db, place_id)
    current_app.logger.info("User %s deleted place %s", user["id"], place_id)
    return "", 204


@places_bp.get("/stats")
@login_required
def stats():
    return jsonify(place_service.get_stats(database.get_db(), session["user_id"]))
