import pytest
from PIL import Image

from twaforge.errors import FetchError, InvalidImageError
from twaforge.generator.images import Icon, IconDefinition, ImageHelper, resize_icon

ICON_URL = "https://example.com/icon.png"


@pytest.mark.asyncio
async def test_fetch_and_generate_icons(fake_web, tmp_path):
    fake_web.add_png(ICON_URL, size=256)

    async with fake_web.client() as client:
        helper = ImageHelper(client)
        icon = await helper.fetch_icon(ICON_URL)
        await helper.generate_icons(
            icon,
            tmp_path,
            [IconDefinition("a/small.png", 48), IconDefinition("b/large.png", 512)],
        )

    with Image.open(tmp_path / "a/small.png") as small:
        assert small.size == (48, 48)
    with Image.open(tmp_path / "b/large.png") as large:
        assert large.size == (512, 512)
    assert fake_web.requests == [ICON_URL]


@pytest.mark.asyncio
async def test_fetch_icon_rejects_bad_status(fake_web):
    async with fake_web.client() as client:
        with pytest.raises(FetchError) as excinfo:
            await ImageHelper(client).fetch_icon(ICON_URL)
    assert excinfo.value.status_code == 404
    assert ICON_URL in str(excinfo.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("content_type", ["text/html", "image/svg+xml"])
async def test_fetch_icon_rejects_non_raster_content_types(fake_web, content_type):
    fake_web.add(ICON_URL, 200, content_type, b"<svg/>")
    async with fake_web.client() as client:
        with pytest.raises(InvalidImageError):
            await ImageHelper(client).fetch_icon(ICON_URL)


@pytest.mark.asyncio
async def test_fetch_icon_rejects_undecodable_body(fake_web):
    fake_web.add(ICON_URL, 200, "image/png", b"not really a png")
    async with fake_web.client() as client:
        with pytest.raises(InvalidImageError):
            await ImageHelper(client).fetch_icon(ICON_URL)


def test_resize_keeps_transparency():
    image = Image.new("RGBA", (64, 64), (255, 0, 0, 0))
    resized = resize_icon(image, 32)
    assert resized.mode == "RGBA"
    assert resized.getpixel((0, 0))[3] == 0


def test_resize_with_background_is_opaque():
    image = Image.new("RGBA", (64, 64), (255, 0, 0, 0))
    resized = resize_icon(image, 32, "#0000FF")
    assert resized.getpixel((10, 10)) == (0, 0, 255, 255)


def test_resize_does_not_bleed_transparent_color():
    image = Image.new("RGBA", (64, 64), (0, 255, 0, 0))
    for x in range(32, 64):
        for y in range(64):
            image.putpixel((x, y), (255, 0, 0, 255))

    resized = resize_icon(image, 17)

    _, green, _, alpha = resized.getpixel((8, 8))
    assert alpha > 0
    assert green == 0


def test_monochrome_filter_keeps_alpha():
    image = Image.new("RGBA", (8, 8), (10, 20, 30, 128))

    tinted = ImageHelper.monochrome_filter(Icon(ICON_URL, image), "#FF0000")

    assert tinted.image.getpixel((0, 0)) == (255, 0, 0, 128)
