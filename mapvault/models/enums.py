#  Map Vault - Enums
#
#  Role, status and type enumerations used across the system.
#
#  Depends on: (none)
#  Used by:    models/schemas.py, services/*, routes/*, canvas/*

from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class LicenseStatus(str, Enum):
    DEMO_ONLY = "demo_only"
    LICENSED = "licensed"
    PUBLIC_DOMAIN = "public_domain"


class OverlayFormat(str, Enum):
    PNG = "png"
    SVG = "svg"
    GEOJSON = "geojson"


class ShapeKind(str, Enum):
    STROKE = "stroke"
    RECT = "rect"
    CIRCLE = "circle"
    LINE = "line"
    TEXT = "text"
    ARROW = "arrow"
    HIGHLIGHT = "highlight"    # OCR review box, never exported


class Bucket(str, Enum):
    TILES = "tiles"
    BASE_MAPS = "base_maps"
    OVERLAYS = "overlays"
