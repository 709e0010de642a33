"""
Photo placement math: cover-fit scaling and horizontal centering.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FitRect:
    """Scaled size and top-left offset of a source drawn over a destination box."""
    width: float
    height: float
    offset_x: float
    offset_y: float


def cover_fit(source_w: float, source_h: float, dest_w: float, dest_h: float) -> FitRect:
    """
    Scale a source uniformly so it covers the destination box.

    The result always fills the destination and may overflow it; the
    offsets center the scaled source and are negative on the overflowing
    axis. Clipping is left to the drawing surface.

    Raises:
        ValueError: source has a zero or negative dimension while the
            destination is non-empty
    """
    if source_w <= 0 or source_h <= 0:
        if dest_w == 0 and dest_h == 0:
            return FitRect(0.0, 0.0, 0.0, 0.0)
        raise ValueError(f"Cannot cover {dest_w}x{dest_h} with a {source_w}x{source_h} source")

    scale = max(dest_w / source_w, dest_h / source_h)
    width = source_w * scale
    height = source_h * scale
    return FitRect(
        width=width,
        height=height,
        offset_x=-(width - dest_w) / 2,
        offset_y=-(height - dest_h) / 2,
    )


def horizontal_center_offset(dest_w: float, element_w: float) -> float:
    """Left edge that centers an element of element_w inside dest_w."""
    return (dest_w - element_w) / 2


def derived_width(target_h: float, source_w: float, source_h: float) -> float:
    """Width matching target_h at the source aspect ratio."""
    if source_h <= 0:
        raise ValueError(f"Source height must be positive, got {source_h}")
    return target_h * (source_w / source_h)
