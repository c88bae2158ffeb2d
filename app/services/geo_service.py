from flask import current_app

from app.errors import UpstreamError, ValidationError
from app.integrations import get_maps
from app.services.validation import parse_amount

MIN_QUERY_LENGTH = 2

_FEATURE_SLOTS = {
    "address": "road",
    "neighborhood": "neighborhood",
    "locality": "city",
    "place": "city",
    "district": "city",
    "region": "state",
    "country": "country",
}


def summarize_features(features):
    """Collapse Mapbox features into road/neighborhood/city/state/country plus display names."""
    parts = {"road": "", "neighborhood": "", "city": "", "state": "", "country": ""}
    for feature in features:
        place_type = (feature.get("place_type") or [None])[0]
        slot = _FEATURE_SLOTS.get(place_type)
        if slot and not parts[slot]:
            parts[slot] = feature.get("text") or ""

    if features:
        for ctx in features[0].get("context") or []:
            prefix = (ctx.get("id") or "").split(".", 1)[0]
            slot = _FEATURE_SLOTS.get(prefix)
            if slot and slot != "road" and not parts[slot]:
                parts[slot] = ctx.get("text") or ""

    road, neighborhood = parts["road"], parts["neighborhood"]
    city, state = parts["city"], parts["state"]

    if city and state:
        location_name = f"{city}, {state}"
    else:
        location_name = city or state or "Unknown Location"

    if road and neighborhood:
        detailed = f"{road}, {neighborhood}"
        if city and city != neighborhood:
            detailed += f", {city}"
    elif neighborhood:
        detailed = f"{neighborhood}, {city}" if city and city != neighborhood else neighborhood
    elif city:
        detailed = f"{city}, {state}" if state and state != city else city
    else:
        detailed = state or "Unknown Location"

    return {"locationName": location_name, "detailedLocation": detailed, **parts}


def to_suggestion(feature):
    state = ""
    for ctx in feature.get("context") or []:
        if (ctx.get("id") or "").startswith("region"):
            state = ctx.get("text") or ""
            break
    center = feature.get("center") or [None, None]
    return {
        "id": feature.get("id"),
        "city": feature.get("text"),
        "state": state,
        "fullPlace": feature.get("place_name"),
        "coordinates": {"longitude": center[0], "latitude": center[1]},
    }


def group_by_state(suggestions):
    grouped = {}
    for suggestion in suggestions:
        grouped.setdefault(suggestion["state"] or "Other", []).append(
            {"city": suggestion["city"], "coordinates": suggestion["coordinates"]}
        )
    return [{"state": state, "cities": cities} for state, cities in grouped.items()]


class GeoService:
    @staticmethod
    def reverse_geocode(latitude, longitude):
        if latitude is None or longitude is None or latitude == "" or longitude == "":
            raise ValidationError("Latitude and longitude are required", code="missing_fields")
        lat = parse_amount(latitude, "latitude")
        lng = parse_amount(longitude, "longitude")
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValidationError("Coordinates out of range", code="invalid_format")

        current_app.logger.info("Reverse geocoding %s, %s", lat, lng)
        features = get_maps().reverse(lat, lng)
        result = summarize_features(features)
        current_app.logger.info("Geocoded location: %s (%s)", result["locationName"], result["detailedLocation"])
        result["rawFeatures"] = features[:3]
        return result

    @staticmethod
    def autocomplete(query, country="in", limit=10):
        query = str(query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return {"suggestions": []}

        maps = get_maps()
        if not maps.is_configured:
            current_app.logger.error("Mapbox token not configured")
            return {"error": "Mapbox token not configured", "suggestions": [], "grouped": []}

        try:
            limit = max(1, min(int(limit), 10))
        except (TypeError, ValueError):
            limit = 10
        try:
            features = maps.search(query, country=country or "in", limit=limit)
        except UpstreamError as exc:
            raise UpstreamError("Failed to fetch suggestions") from exc
        suggestions = [to_suggestion(feature) for feature in features]
        return {"suggestions": suggestions, "grouped": group_by_state(suggestions)}
