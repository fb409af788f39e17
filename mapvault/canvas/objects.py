#  Map Vault - Annotation Objects
#
#  Vector objects that live on an AnnotationSurface: freehand strokes,
#  shapes, text and OCR highlight boxes. Each knows how to paint itself
#  with Pillow, describe itself as SVG, and round-trip through a dict.
#
#  Depends on: models/enums.py
#  Used by:    canvas/surface.py

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields
from xml.sax.saxutils import escape, quoteattr

from PIL import ImageColor, ImageDraw, ImageFont

from mapvault.models.enums import ShapeKind

DRAW_COLOR = "#ff0000"
DRAW_WIDTH = 3
ERASE_COLOR = "#ffffff"
ERASE_WIDTH = 20
HIGHLIGHT_STROKE = "#ff0000"
HIGHLIGHT_FILL = (255, 0, 0, 77)


def _rgba(color: str | tuple | None) -> tuple | None:
    if color is None:
        return None
    if isinstance(color, tuple):
        return color
    rgb = ImageColor.getrgb(color)
    return rgb if len(rgb) == 4 else (*rgb, 255)


def _svg_paint(color: str | tuple | None) -> str:
    if color is None:
        return "none"
    if isinstance(color, tuple):
        r, g, b, *a = color
        alpha = (a[0] / 255) if a else 1
        return f"rgba({r},{g},{b},{alpha:.2f})"
    return color


def _num(value: float) -> str:
    return f"{value:g}"


@dataclass
class AnnotationObject(ABC):
    """Base for everything drawn on a surface. Coordinates are surface pixels."""

    kind = ""

    @abstractmethod
    def translate(self, dx: float, dy: float) -> None: ...

    @abstractmethod
    def paint(self, draw: ImageDraw.ImageDraw) -> None: ...

    @abstractmethod
    def to_svg(self) -> str: ...

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind
        return data


@dataclass
class Stroke(AnnotationObject):
    points: list[tuple[float, float]] = field(default_factory=list)
    color: str = DRAW_COLOR
    width: int = DRAW_WIDTH
    erase: bool = False

    kind = ShapeKind.STROKE.value

    def __post_init__(self):
        self.points = [(float(x), float(y)) for x, y in self.points]

    def translate(self, dx, dy):
        self.points = [(x + dx, y + dy) for x, y in self.points]

    def paint(self, draw):
        if not self.points:
            return
        fill = _rgba(self.color)
        if len(self.points) == 1:
            x, y = self.points[0]
            r = self.width / 2
            draw.ellipse([x - r, y - r, x + r, y + r], fill=fill)
            return
        draw.line(self.points, fill=fill, width=self.width, joint="curve")

    def to_svg(self):
        pts = " ".join(f"{_num(x)},{_num(y)}" for x, y in self.points)
        return (
            f'<polyline points="{pts}" fill="none" stroke="{_svg_paint(self.color)}" '
            f'stroke-width="{self.width}" stroke-linecap="round" stroke-linejoin="round"/>'
        )


@dataclass
class RectShape(AnnotationObject):
    left: float = 100
    top: float = 100
    width: float = 200
    height: float = 150
    stroke: str = DRAW_COLOR
    fill: str | None = None
    stroke_width: int = DRAW_WIDTH

    kind = ShapeKind.RECT.value

    def translate(self, dx, dy):
        self.left += dx
        self.top += dy

    def paint(self, draw):
        draw.rectangle(
            [self.left, self.top, self.left + self.width, self.top + self.height],
            fill=_rgba(self.fill), outline=_rgba(self.stroke), width=self.stroke_width,
        )

    def to_svg(self):
        return (
            f'<rect x="{_num(self.left)}" y="{_num(self.top)}" width="{_num(self.width)}" '
            f'height="{_num(self.height)}" fill="{_svg_paint(self.fill)}" '
            f'stroke="{_svg_paint(self.stroke)}" stroke-width="{self.stroke_width}"/>'
        )


@dataclass
class HighlightBox(RectShape):
    """Semi-transparent box marking a detected text region. Never exported."""

    stroke: str = HIGHLIGHT_STROKE
    fill: tuple | None = HIGHLIGHT_FILL
    stroke_width: int = 2
    text: str = ""

    kind = ShapeKind.HIGHLIGHT.value

    def __post_init__(self):
        if isinstance(self.fill, list):
            self.fill = tuple(self.fill)


@dataclass
class CircleShape(AnnotationObject):
    # left/top is the bounding box corner
    left: float = 100
    top: float = 100
    radius: float = 75
    stroke: str = DRAW_COLOR
    fill: str | None = None
    stroke_width: int = DRAW_WIDTH

    kind = ShapeKind.CIRCLE.value

    def translate(self, dx, dy):
        self.left += dx
        self.top += dy

    def paint(self, draw):
        d = self.radius * 2
        draw.ellipse(
            [self.left, self.top, self.left + d, self.top + d],
            fill=_rgba(self.fill), outline=_rgba(self.stroke), width=self.stroke_width,
        )

    def to_svg(self):
        cx = self.left + self.radius
        cy = self.top + self.radius
        return (
            f'<circle cx="{_num(cx)}" cy="{_num(cy)}" r="{_num(self.radius)}" '
            f'fill="{_svg_paint(self.fill)}" stroke="{_svg_paint(self.stroke)}" '
            f'stroke-width="{self.stroke_width}"/>'
        )


@dataclass
class LineShape(AnnotationObject):
    x1: float = 50
    y1: float = 50
    x2: float = 200
    y2: float = 50
    stroke: str = DRAW_COLOR
    stroke_width: int = DRAW_WIDTH

    kind = ShapeKind.LINE.value

    def translate(self, dx, dy):
        self.x1 += dx
        self.x2 += dx
        self.y1 += dy
        self.y2 += dy

    def paint(self, draw):
        draw.line(
            [(self.x1, self.y1), (self.x2, self.y2)],
            fill=_rgba(self.stroke), width=self.stroke_width,
        )

    def to_svg(self):
        return (
            f'<line x1="{_num(self.x1)}" y1="{_num(self.y1)}" x2="{_num(self.x2)}" '
            f'y2="{_num(self.y2)}" stroke="{_svg_paint(self.stroke)}" '
            f'stroke-width="{self.stroke_width}"/>'
        )


@dataclass
class TextShape(AnnotationObject):
    left: float = 100
    top: float = 100
    text: str = "Click to edit"
    font_size: int = 24
    fill: str = DRAW_COLOR

    kind = ShapeKind.TEXT.value

    def translate(self, dx, dy):
        self.left += dx
        self.top += dy

    def paint(self, draw):
        font = ImageFont.load_default(size=self.font_size)
        draw.text((self.left, self.top), self.text, fill=_rgba(self.fill), font=font)

    def to_svg(self):
        # SVG text is positioned on the baseline
        return (
            f'<text x="{_num(self.left)}" y="{_num(self.top + self.font_size)}" '
            f'font-size="{self.font_size}" fill={quoteattr(_svg_paint(self.fill))}>'
            f"{escape(self.text)}</text>"
        )


@dataclass
class ArrowShape(AnnotationObject):
    """Horizontal arrow: shaft of `length`, two head strokes of `head` px."""

    left: float = 100
    top: float = 100
    length: float = 150
    head: float = 10
    stroke: str = DRAW_COLOR
    stroke_width: int = DRAW_WIDTH

    kind = ShapeKind.ARROW.value

    def translate(self, dx, dy):
        self.left += dx
        self.top += dy

    def _segments(self) -> list[tuple[tuple[float, float], tuple[float, float]]]:
        # top is the bounding box edge, the shaft sits one head-height below it
        x0, y0 = self.left, self.top + self.head
        tip = (x0 + self.length, y0)
        back = x0 + self.length - self.head
        return [
            ((x0, y0), tip),
            (tip, (back, y0 - self.head)),
            (tip, (back, y0 + self.head)),
        ]

    def path_data(self) -> str:
        (start, tip), (_, up), (_, down) = self._segments()
        return (
            f"M {_num(start[0])} {_num(start[1])} L {_num(tip[0])} {_num(tip[1])} "
            f"L {_num(up[0])} {_num(up[1])} M {_num(tip[0])} {_num(tip[1])} "
            f"L {_num(down[0])} {_num(down[1])}"
        )

    def paint(self, draw):
        color = _rgba(self.stroke)
        for a, b in self._segments():
            draw.line([a, b], fill=color, width=self.stroke_width)

    def to_svg(self):
        return (
            f'<path d="{self.path_data()}" fill="none" stroke="{_svg_paint(self.stroke)}" '
            f'stroke-width="{self.stroke_width}"/>'
        )


OBJECT_TYPES: dict[str, type[AnnotationObject]] = {
    cls.kind: cls
    for cls in (Stroke, RectShape, CircleShape, LineShape, TextShape, ArrowShape, HighlightBox)
}


def object_from_dict(data: dict) -> AnnotationObject:
    """Build an object from its dict form. Raises ValueError on unknown kinds or fields."""
    if not isinstance(data, dict):
        raise ValueError("object must be a JSON object")
    kind = data.get("kind")
    cls = OBJECT_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"unknown object kind: {kind!r}")

    allowed = {f.name for f in fields(cls)}
    params = {k: v for k, v in data.items() if k not in ("kind", "id")}
    unknown = set(params) - allowed
    if unknown:
        raise ValueError(f"unknown fields for {kind}: {', '.join(sorted(unknown))}")
    for f in fields(cls):
        if f.name not in params:
            continue
        value = params[f.name]
        if isinstance(f.default, (int, float)) and not isinstance(f.default, bool):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{kind}.{f.name} must be a number")
        elif f.name == "text" and not isinstance(value, str):
            raise ValueError(f"{kind}.text must be a string")
    try:
        obj = cls(**params)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid {kind}: {e}") from e

    for name in ("stroke", "color", "fill"):
        value = getattr(obj, name, None)
        if value is not None and not isinstance(value, (str, tuple)):
            raise ValueError(f"invalid colour for {kind}.{name}: {value!r}")
        if isinstance(value, str):
            try:
                ImageColor.getrgb(value)
            except ValueError as e:
                raise ValueError(f"invalid colour for {kind}.{name}: {value!r}") from e
    return obj
