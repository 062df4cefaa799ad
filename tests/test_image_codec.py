"""Tests for image compression."""

import base64
import io

import pytest
from PIL import Image

from image_codec import compress, compress_all, compress_async, fit_within


def _open(payload):
    header, _, data = payload.partition(",")
    return header, Image.open(io.BytesIO(base64.b64decode(data)))


class TestFitWithin:
    """Bounding box arithmetic."""

    def test_landscape_is_limited_by_width(self):
        assert fit_within(1000, 500, 800, 800) == (800, 400)

    def test_portrait_is_limited_by_height(self):
        assert fit_within(500, 1000, 800, 800) == (400, 800)

    def test_small_images_are_not_upscaled(self):
        assert fit_within(120, 80, 800, 800) == (120, 80)

    def test_tiny_side_never_reaches_zero(self):
        assert fit_within(10000, 2, 800, 800) == (800, 1)


class TestCompress:
    """Decode, resize and re-encode."""

    def test_large_image_is_downscaled_to_jpeg(self, make_image):
        header, img = _open(compress(make_image(1600, 1200), 800, 800))

        assert header == "data:image/jpeg;base64"
        assert img.format == "JPEG"
        assert img.size == (800, 600)

    def test_small_image_keeps_its_size(self, make_image):
        _, img = _open(compress(make_image(200, 100)))

        assert img.size == (200, 100)

    def test_transparent_image_is_flattened(self, make_image):
        payload = make_image(300, 300, color=(10, 20, 30, 128), mode="RGBA")

        _, img = _open(compress(payload))

        assert img.mode == "RGB"

    def test_bare_base64_is_accepted(self, make_image):
        bare = make_image(900, 900).split(",", 1)[1]

        _, img = _open(compress(bare))

        assert img.size == (800, 800)

    @pytest.mark.parametrize("payload", [
        "not-an-image",
        "data:image/png;base64,AAAA",
        "data:image/png;base64,@@@",
        "/photos/products/mirror-1.jpg",
        "",
    ])
    def test_undecodable_payload_is_returned_unchanged(self, payload):
        assert compress(payload) == payload

    def test_compress_all_keeps_order(self, make_image):
        images = [make_image(1000, 1000), "broken"]

        out = compress_all(images, max_width=100, max_height=100)

        assert _open(out[0])[1].size == (100, 100)
        assert out[1] == "broken"

    @pytest.mark.asyncio
    async def test_compress_async_matches_sync(self, make_image):
        image = make_image(1200, 600)

        assert await compress_async([image]) == [compress(image)]
