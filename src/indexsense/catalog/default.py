"""
Built-in index catalog for the travel storefront.

Each entry is annotated with the query pattern it serves. Options are
declared on the spec itself: uniqueness and TTL are never inferred from
field names at provisioning time.
"""

from __future__ import annotations

from typing import Any

from indexsense.catalog.models import IndexCatalog

CATALOG_VERSION = "2024.1"


def _idx(keys: dict[str, Any], **options: Any) -> dict[str, Any]:
    spec: dict[str, Any] = {"keyPattern": keys}
    if options:
        spec["options"] = options
    return spec


_COLLECTIONS: dict[str, list[dict[str, Any]]] = {
    "trips": [
        _idx({"location": "2dsphere"}),  # location-based search
        _idx({"location.name": 1, "price": 1}),
        _idx({"difficulty": 1, "price": 1}),
        _idx({"rating": -1, "reviewCount": -1}),  # popularity sort
        _idx({"createdAt": -1}),
        _idx({"updatedAt": -1}),
        _idx({"price": 1, "duration": 1}),
        _idx({
            "title": "text",
            "description": "text",
            "longDescription": "text",
            "location.name": "text",
        }),
        _idx({"difficulty": 1, "rating": -1, "price": 1}),
        _idx({"location.name": 1, "difficulty": 1, "price": 1}),
        _idx({"duration": 1, "maxGroupSize": 1, "price": 1}),
        _idx({"availableDates": 1, "price": 1}),
        _idx({"rating": -1, "reviewCount": -1, "difficulty": 1}),
        _idx({"tags": 1, "rating": -1}),  # similar trips
        _idx({"guide.name": 1}),
        _idx({"status": 1, "createdAt": -1}),  # admin filtering
        _idx({"featured": 1, "rating": -1}),
    ],
    "accommodations": [
        _idx({"location": "2dsphere"}),
        _idx({"location.name": 1, "price": 1}),
        _idx({"type": 1, "price": 1}),
        _idx({"rating": -1, "reviewCount": -1}),
        _idx({"createdAt": -1}),
        _idx({"updatedAt": -1}),
        _idx({
            "title": "text",
            "description": "text",
            "longDescription": "text",
            "location.name": "text",
            "location.address": "text",
        }),
        _idx({"type": 1, "rating": -1, "price": 1}),
        _idx({"location.name": 1, "type": 1, "price": 1}),
        _idx({"amenities": 1, "rating": -1}),
        _idx({"rooms.capacity": 1, "price": 1}),
        _idx({"rooms.available": 1, "location.name": 1}),
        _idx({"availability.date": 1, "availability.available": 1}),
        _idx({"host.name": 1, "rating": -1}),
    ],
    "users": [
        _idx({"email": 1}, unique=True),  # login
        _idx({"resetPasswordToken": 1}),
        _idx({"verificationToken": 1}),
        _idx({"role": 1, "createdAt": -1}),
        _idx({"preferences.interests": 1}),
        _idx({"location.country": 1, "location.city": 1}),
        _idx({"lastActive": -1}),
        _idx({"createdAt": -1}),
        _idx({"social.provider": 1, "social.id": 1}),  # social login
    ],
    "bookings": [
        _idx({"user": 1, "createdAt": -1}),
        _idx({"user": 1, "status": 1}),
        _idx({"itemId": 1, "itemType": 1, "createdAt": -1}),
        _idx({"itemType": 1, "status": 1}),
        _idx({"checkInDate": 1, "checkOutDate": 1}),
        _idx({"createdAt": -1}),
        _idx({"updatedAt": -1}),
        _idx({"status": 1, "createdAt": -1}),
        _idx({"paymentStatus": 1, "totalAmount": -1}),
        _idx({"paymentIntentId": 1}),  # payment provider lookup
        _idx({"user": 1, "itemType": 1, "status": 1}),
        _idx({"itemId": 1, "checkInDate": 1, "checkOutDate": 1}),  # availability
        _idx({"status": 1, "checkInDate": 1}),  # upcoming bookings
    ],
    "reviews": [
        _idx({"itemId": 1, "itemType": 1, "createdAt": -1}),
        _idx({"itemType": 1, "rating": -1}),
        _idx({"user": 1, "createdAt": -1}),
        _idx({"rating": -1, "helpful": -1}),
        _idx({"createdAt": -1}),
        _idx({"helpful": -1}),
        _idx({"title": "text", "comment": "text"}),
        _idx({"reported": 1, "createdAt": -1}),  # moderation queue
        _idx({"verified": 1, "rating": -1}),
        _idx({"itemId": 1, "itemType": 1, "rating": -1, "helpful": -1}),
        _idx({"user": 1, "itemType": 1, "createdAt": -1}),
    ],
    "wishlists": [
        _idx({"user": 1, "createdAt": -1}),
        _idx({"user": 1, "itemType": 1}),
        _idx({"itemId": 1, "itemType": 1}),
        _idx({"user": 1, "itemId": 1, "itemType": 1}, unique=True),  # one entry per item
    ],
    "tripPlans": [
        _idx({"user": 1, "createdAt": -1}),
        _idx({"isPublic": 1, "createdAt": -1}),
        _idx({"isPublic": 1, "rating": -1}),
        _idx({"items.itemType": 1, "items.location": 1}),
        _idx({"totalEstimatedCost": 1, "duration": 1}),
        _idx({"name": "text", "description": "text"}),
        _idx({"shareId": 1}),
    ],
    "analytics": [
        _idx({"eventType": 1, "timestamp": -1}),
        _idx({"userId": 1, "timestamp": -1}),
        _idx({"itemId": 1, "itemType": 1, "eventType": 1, "timestamp": -1}),
        _idx({"sessionId": 1, "timestamp": -1}),
        _idx({"timestamp": -1}),
        _idx({"year": 1, "month": 1, "day": 1, "eventType": 1}),  # daily rollups
        _idx({"location.country": 1, "location.city": 1, "timestamp": -1}),
    ],
    "cache": [
        _idx({"key": 1}, unique=True),  # one document per cache key
        _idx({"expiresAt": 1}, ttlSeconds=0),  # expire at the stored timestamp
        _idx({"category": 1, "expiresAt": 1}),
    ],
    "sessions": [
        _idx({"sessionId": 1}),
        _idx({"userId": 1, "expiresAt": -1}),
        _idx({"expiresAt": 1}, ttlSeconds=0),
    ],
}

DEFAULT_CATALOG = IndexCatalog.from_mapping(_COLLECTIONS, version=CATALOG_VERSION)
