from flask import Blueprint, jsonify, request

from app.extensions import limiter
from app.services import GeoService

api_geo_bp = Blueprint("api_geo", __name__)


@api_geo_bp.post("/reverse-geocode")
@limiter.limit("60 per minute")
def reverse_geocode():
    payload = request.get_json(silent=True) or {}
    return jsonify(GeoService.reverse_geocode(payload.get("latitude"), payload.get("longitude")))


@api_geo_bp.post("/places-autocomplete")
@limiter.limit("120 per minute")
def places_autocomplete():
    payload = request.get_json(silent=True) or {}
    return jsonify(
        GeoService.autocomplete(
            payload.get("query"),
            country=payload.get("country") or "in",
            limit=payload.get("limit", 10),
        )
    )
