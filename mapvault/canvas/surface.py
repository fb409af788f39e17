#  Map Vault - Annotation Surface
#
#  A fixed-size drawing surface holding an optional background image and an
#  ordered set of annotation objects. Objects live in an id-keyed arena;
#  paint order is a separate list of ids so reordering never copies objects.
#
#  Depends on: canvas/objects.py, canvas/base.py, canvas/raster.py
#  Used by:    services/artifacts.py, services/imaging.py

import logging
import uuid

from PIL import Image, ImageDraw

from mapvault.canvas.base import TextRegion
from mapvault.canvas.objects import (
    DRAW_COLOR,
    DRAW_WIDTH,
    ERASE_COLOR,
    ERASE_WIDTH,
    AnnotationObject,
    ArrowShape,
    CircleShape,
    HighlightBox,
    LineShape,
    RectShape,
    Stroke,
    TextShape,
    object_from_dict,
)
from mapvault.canvas.raster import to_png_bytes
from mapvault.config import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH
from mapvault.exceptions import NotFoundError
from mapvault.models.enums import ShapeKind

logger = logging.getLogger("mapvault.canvas.surface")

_SHAPES = {
    ShapeKind.RECT: RectShape,
    ShapeKind.CIRCLE: CircleShape,
    ShapeKind.LINE: LineShape,
    ShapeKind.TEXT: TextShape,
    ShapeKind.ARROW: ArrowShape,
}


class AnnotationSurface:
    """Drawing surface for overlays and base map review.

    background_color=None gives a transparent surface (overlays); erase
    strokes then paint white, matching the editor.
    """

    def __init__(
        self,
        width: int = DEFAULT_CANVAS_WIDTH,
        height: int = DEFAULT_CANVAS_HEIGHT,
        background: Image.Image | None = None,
        background_color: str | None = ERASE_COLOR,
    ):
        if width <= 0 or height <= 0:
            raise ValueError("Surface dimensions must be positive")
        self.width = width
        self.height = height
        self.background_color = background_color
        self._background: Image.Image | None = None
        self._arena: dict[str, AnnotationObject] = {}
        self._order: list[str] = []
        self._history: list[str] = []
        if background is not None:
            self.set_background(background)

    # ---- background ----

    @property
    def background(self) -> Image.Image | None:
        return self._background

    def set_background(self, image: Image.Image | None) -> None:
        """Scale image to the surface size and use it as the backdrop."""
        if image is None:
            self._background = None
            return
        img = image.convert("RGBA")
        if img.size != (self.width, self.height):
            img = img.resize((self.width, self.height), Image.Resampling.LANCZOS)
        self._background = img

    # ---- insertion ----

    def add_object(self, obj: AnnotationObject) -> str:
        obj_id = uuid.uuid4().hex[:12]
        self._arena[obj_id] = obj
        self._order.append(obj_id)
        self._history.append(obj_id)
        return obj_id

    def draw(self, points, color: str = DRAW_COLOR, width: int = DRAW_WIDTH) -> str:
        return self.add_object(Stroke(points=list(points), color=color, width=width))

    def erase(self, points, width: int = ERASE_WIDTH) -> str:
        color = self.background_color or ERASE_COLOR
        return self.add_object(Stroke(points=list(points), color=color, width=width, erase=True))

    def add_shape(
        self,
        kind: ShapeKind | str,
        stroke: str = DRAW_COLOR,
        fill: str | None = None,
        stroke_width: int = DRAW_WIDTH,
    ) -> str:
        """Insert a shape at its default position and size."""
        try:
            kind = ShapeKind(kind)
            cls = _SHAPES[kind]
        except (ValueError, KeyError):
            raise ValueError(f"Unsupported shape: {kind}") from None

        if kind == ShapeKind.TEXT:
            obj = TextShape(fill=fill or stroke)
        elif kind in (ShapeKind.LINE, ShapeKind.ARROW):
            obj = cls(stroke=stroke, stroke_width=stroke_width)
        else:
            obj = cls(stroke=stroke, fill=fill, stroke_width=stroke_width)
        return self.add_object(obj)

    # ---- object ops ----

    def get(self, obj_id: str) -> AnnotationObject:
        try:
            return self._arena[obj_id]
        except KeyError:
            raise NotFoundError(f"Object {obj_id} not found") from None

    def move(self, obj_id: str, dx: float, dy: float) -> None:
        self.get(obj_id).translate(dx, dy)

    def remove(self, obj_id: str) -> AnnotationObject:
        obj = self.get(obj_id)
        del self._arena[obj_id]
        self._order.remove(obj_id)
        if obj_id in self._history:
            self._history.remove(obj_id)
        return obj

    def reorder(self, obj_id: str, index: int) -> None:
        """Move an object to position index in paint order (0 = bottom)."""
        self.get(obj_id)
        self._order.remove(obj_id)
        index = max(0, min(index, len(self._order)))
        self._order.insert(index, obj_id)

    def bring_to_front(self, obj_id: str) -> None:
        self.reorder(obj_id, len(self._order))

    def undo(self) -> str | None:
        """Remove the most recently added object. Returns its id, or None if empty."""
        if not self._history:
            return None
        obj_id = self._history[-1]
        self.remove(obj_id)
        return obj_id

    def clear(self) -> None:
        """Remove every object; the background stays."""
        self._arena.clear()
        self._order.clear()
        self._history.clear()

    def objects(self, include_highlights: bool = True) -> list[tuple[str, AnnotationObject]]:
        """(id, object) pairs in paint order."""
        return [
            (obj_id, self._arena[obj_id])
            for obj_id in self._order
            if include_highlights or not isinstance(self._arena[obj_id], HighlightBox)
        ]

    def __len__(self) -> int:
        return len(self._order)

    # ---- OCR review ----

    def add_highlights(self, regions: list[TextRegion], scale: float = 1.0) -> list[str]:
        """Outline detected regions. scale maps region coordinates to surface pixels."""
        ids = []
        for r in regions:
            box = HighlightBox(
                left=r.x * scale, top=r.y * scale,
                width=r.width * scale, height=r.height * scale,
                text=r.text,
            )
            ids.append(self.add_object(box))
        return ids

    def clear_highlights(self) -> int:
        ids = [obj_id for obj_id, obj in self._arena.items() if isinstance(obj, HighlightBox)]
        for obj_id in ids:
            self.remove(obj_id)
        return len(ids)

    # ---- export ----

    def render(self, include_highlights: bool = False) -> Image.Image:
        """Flatten background and objects into a new RGBA image."""
        if self._background is not None:
            img = self._background.copy()
        elif self.background_color:
            img = Image.new("RGBA", (self.width, self.height), self.background_color)
        else:
            img = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))

        # Objects go on their own layer so translucent fills blend with the backdrop
        layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer, "RGBA")
        for _, obj in self.objects(include_highlights=include_highlights):
            obj.paint(draw)
        return Image.alpha_composite(img, layer)

    def export_png(self) -> bytes:
        return to_png_bytes(self.render())

    def to_svg(self) -> str:
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" '
            f'height="{self.height}" viewBox="0 0 {self.width} {self.height}">'
        ]
        if self.background_color:
            parts.append(
                f'<rect x="0" y="0" width="{self.width}" height="{self.height}" '
                f'fill="{self.background_color}"/>'
            )
        for _, obj in self.objects(include_highlights=False):
            parts.append(obj.to_svg())
        parts.append("</svg>")
        return "\n".join(parts)

    def to_commands(self) -> list[dict]:
        return [obj.to_dict() for _, obj in self.objects(include_highlights=False)]

    @classmethod
    def from_commands(
        cls,
        width: int,
        height: int,
        commands: list[dict],
        background_color: str | None = None,
    ) -> "AnnotationSurface":
        """Rebuild a surface from object dicts. Raises ValueError naming the bad entry."""
        surface = cls(width, height, background_color=background_color)
        for i, command in enumerate(commands):
            try:
                surface.add_object(object_from_dict(command))
            except ValueError as e:
                raise ValueError(f"objects[{i}]: {e}") from e
        logger.debug("Built %dx%d surface with %d objects", width, height, len(surface))
        return surface
