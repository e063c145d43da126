"""Icon download and resizing for the generated project."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from twaforge.errors import FetchError, InvalidImageError
from twaforge.util import color_to_rgba, gather_or_cancel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IconDefinition:
    dest: str
    size: int


@dataclass(frozen=True)
class Icon:
    url: str
    image: Image.Image


def _decode(url: str, content: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError(f"Unable to decode icon {url}: {exc}") from exc
    return image.convert("RGBA")


def resize_icon(
    image: Image.Image, size: int, background_color: str | None = None
) -> Image.Image:
    """Resize ``image`` to a ``size`` square.

    Resampling happens on premultiplied alpha so transparent pixels do not
    bleed their color into the edges. With ``background_color`` the result
    is composited over an opaque background.
    """
    resized = (
        image.convert("RGBa")
        .resize((size, size), resample=Image.Resampling.LANCZOS)
        .convert("RGBA")
    )
    if background_color is None:
        return resized
    background = Image.new("RGBA", (size, size), color_to_rgba(background_color))
    background.alpha_composite(resized)
    return background


def _write_png(image: Image.Image, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    image.save(dest, format="PNG")


class ImageHelper:
    """Fetches icons and writes the resized PNGs."""

    def __init__(self, client: httpx.AsyncClient, log: logging.Logger | None = None):
        self.client = client
        self.log = log or logger

    async def fetch_icon(self, icon_url: str) -> Icon:
        self.log.debug("Fetching icon %s", icon_url)
        response = await self.client.get(icon_url)
        if response.status_code != 200:
            raise FetchError(
                f"Failed to download icon {icon_url}. "
                f"Responded with status {response.status_code}",
                url=icon_url,
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type")
        if not content_type or not content_type.startswith("image/"):
            raise InvalidImageError(
                f'Received icon "{icon_url}" with invalid Content-Type. '
                f'Responded with Content-Type "{content_type}"'
            )
        if content_type.startswith("image/svg"):
            raise InvalidImageError("Sorry, SVGs aren't supported yet.")

        image = await asyncio.to_thread(_decode, icon_url, response.content)
        return Icon(url=icon_url, image=image)

    async def generate_icon(
        self,
        icon: Icon,
        target_dir: Path,
        icon_def: IconDefinition,
        background_color: str | None = None,
    ) -> None:
        dest = Path(target_dir) / icon_def.dest

        def _work() -> None:
            _write_png(resize_icon(icon.image, icon_def.size, background_color), dest)

        await asyncio.to_thread(_work)

    async def generate_icons(
        self,
        icon: Icon,
        target_dir: Path,
        icon_defs: list[IconDefinition],
        background_color: str | None = None,
    ) -> None:
        await gather_or_cancel(
            *(
                self.generate_icon(icon, target_dir, icon_def, background_color)
                for icon_def in icon_defs
            )
        )

    @staticmethod
    def monochrome_filter(icon: Icon, theme_color: str) -> Icon:
        """Paint every pixel with ``theme_color``, keeping the original alpha."""
        red, green, blue, _ = color_to_rgba(theme_color)
        tinted = Image.new("RGBA", icon.image.size, (red, green, blue, 255))
        tinted.putalpha(icon.image.getchannel("A"))
        return Icon(url=icon.url, image=tinted)


__all__ = ["Icon", "IconDefinition", "ImageHelper", "resize_icon"]
