from dataclasses import dataclass, replace

import numpy as np
from rasterio.coords import BoundingBox

from sparsegrid.math import round_to_multiple


@dataclass
class Extent:
    """Axis-aligned bounding rectangle given by its lower-left and upper-right corners.

    Equality is exact floating point equality of the four coordinates.
    """

    llx: float
    lly: float
    urx: float
    ury: float

    def __post_init__(self):
        self.llx = float(self.llx)
        self.lly = float(self.lly)
        self.urx = float(self.urx)
        self.ury = float(self.ury)

    def __str__(self) -> str:
        return f"[({self.llx},{self.lly}),({self.urx},{self.ury})]"

    @classmethod
    def from_bounds(cls, bounds: BoundingBox | tuple[float, float, float, float]) -> "Extent":
        """Create an extent from (left, bottom, right, top) bounds, e.g. rasterio's BoundingBox."""
        left, bottom, right, top = bounds
        return cls(left, bottom, right, top)

    def to_bounds(self) -> BoundingBox:
        """Return the extent as a rasterio BoundingBox (left, bottom, right, top)."""
        return BoundingBox(self.llx, self.lly, self.urx, self.ury)

    @property
    def width(self) -> float:
        return self.urx - self.llx

    @property
    def height(self) -> float:
        return self.ury - self.lly

    def copy(self) -> "Extent":
        return replace(self)

    def is_valid(self) -> bool:
        """Check that the extent covers some area in both directions."""
        return self.width > 0 and self.height > 0

    def contains(self, x: float, y: float) -> bool:
        """Check if the point lies in [llx, urx) x [lly, ury)."""
        return self.llx <= x < self.urx and self.lly <= y < self.ury

    def contains_extent(self, other: "Extent") -> bool:
        """Check if this extent contains or equals the other extent."""
        return (
            other is not None
            and self.llx <= other.llx
            and self.lly <= other.lly
            and self.urx >= other.urx
            and self.ury >= other.ury
        )

    def intersects(self, other: "Extent") -> bool:
        """Check if this extent overlaps the other. Touching extents do not intersect."""
        return other is not None and not (
            self.urx <= other.llx
            or self.ury <= other.lly
            or self.llx >= other.urx
            or self.lly >= other.ury
        )

    def clip(self, clip_extent: "Extent") -> "Extent":
        """Return the part of this extent that lies within clip_extent.

        Without overlap the result is an empty extent located at a corner of the
        clipped area.
        """
        llx = max(self.llx, clip_extent.llx)
        lly = max(self.lly, clip_extent.lly)
        urx = min(self.urx, clip_extent.urx)
        ury = min(self.ury, clip_extent.ury)
        return Extent(min(llx, urx), min(lly, ury), urx, ury)

    def union(self, other: "Extent") -> "Extent":
        """Return the smallest extent containing both extents."""
        return Extent(
            min(self.llx, other.llx),
            min(self.lly, other.lly),
            max(self.urx, other.urx),
            max(self.ury, other.ury),
        )

    def snap(
        self,
        xcellsize: float,
        ycellsize: float | None = None,
        enlarge: bool = False,
        origin: tuple[float, float] = (0.0, 0.0),
    ) -> "Extent":
        """Snap the corners of the extent to multiples of the cell size.

        Args:
            xcellsize (float): Cell size in x-direction.
            ycellsize (float | None, optional): Cell size in y-direction. Defaults to xcellsize.
            enlarge (bool, optional): If True, snap outward so that the snapped extent
                contains the unsnapped one. Otherwise snap to the nearest multiples.
            origin (tuple[float, float], optional): Coordinate the multiples are counted from.

        Returns:
            Extent: The snapped extent.
        """
        ycellsize = xcellsize if ycellsize is None else ycellsize
        x0, y0 = origin
        lower = np.floor if enlarge else np.round
        upper = np.ceil if enlarge else np.round
        return Extent(
            round_to_multiple(self.llx, xcellsize, x0, lower),
            round_to_multiple(self.lly, ycellsize, y0, lower),
            round_to_multiple(self.urx, xcellsize, x0, upper),
            round_to_multiple(self.ury, ycellsize, y0, upper),
        )
