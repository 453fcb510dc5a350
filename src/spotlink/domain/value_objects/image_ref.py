"""ImageRef value object for remote artwork."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageRef:
    """Reference to a remote image.

    Spotify reports width/height as null for some artist images, so both are
    optional. Selection treats a missing width as 0.
    """

    url: str
    width: int | None = None
    height: int | None = None

    @property
    def sort_width(self) -> int:
        return self.width or 0


# Hey future me - widest image is the primary artwork, narrowest is the
# thumbnail. With a single image there is no thumbnail at all (the primary
# already covers it). max()/min() keep the FIRST image on ties.
def select_artwork(images: list[ImageRef]) -> tuple[ImageRef | None, ImageRef | None]:
    """Pick (primary, thumbnail) from a list of remote images."""
    if not images:
        return None, None
    primary = max(images, key=lambda image: image.sort_width)
    if len(images) < 2:
        return primary, None
    thumb = min(images, key=lambda image: image.sort_width)
    return primary, thumb
