"""Tests for pixel buffers and the host value adapter."""

import numpy as np
import pytest

from adapters import (
    animated_frame_to_host,
    bytes_from_host,
    frames_from_host,
    image_from_host,
    image_to_host,
    uint_from_host,
)
from pixels import AnimatedFrame, ArgumentError, InvalidImage, PixelBuffer


def test_pixel_buffer_validation():
    assert PixelBuffer(2, 3, b"\x00" * 24).is_valid()
    assert PixelBuffer(0, 0, b"").is_valid()

    with pytest.raises(InvalidImage, match="Invalid image"):
        PixelBuffer(2, 3, b"\x00" * 23).validate()
    with pytest.raises(InvalidImage, match="custom reason"):
        PixelBuffer(1, 1, b"").validate("custom reason")


def test_pixel_buffer_array_round_trip():
    arr = np.arange(2 * 3 * 4, dtype=np.uint8).reshape(2, 3, 4)
    image = PixelBuffer.from_array(arr)

    assert (image.width, image.height) == (3, 2)
    assert image.byte_length == 24
    assert (image.to_array() == arr).all()


def test_pixel_buffer_from_array_requires_rgba():
    with pytest.raises(InvalidImage):
        PixelBuffer.from_array(np.zeros((2, 2, 3), dtype=np.uint8))


def test_delay_is_truncated_to_whole_milliseconds():
    image = PixelBuffer(1, 1, b"\x00" * 4)

    assert AnimatedFrame(image, delay=(7, 2)).delay_ms == 3
    assert AnimatedFrame(image, delay=(20, 1)).delay_ms == 20
    assert AnimatedFrame(image, delay=(999, 1000)).delay_ms == 0


def test_uint_from_host():
    assert uint_from_host(0, 'x') == 0
    assert uint_from_host(np.uint16(9), 'x') == 9
    assert uint_from_host(2 ** 32 - 1, 'x') == 2 ** 32 - 1

    for bad in (-1, 2 ** 32, 1.5, "3", None, True):
        with pytest.raises(ArgumentError):
            uint_from_host(bad, 'x')


def test_bytes_from_host_copies_mutable_buffers():
    source = bytearray(b"\x01\x02")
    copied = bytes_from_host(source)
    source[0] = 99

    assert copied == b"\x01\x02"
    assert bytes_from_host(memoryview(b"ab")) == b"ab"

    with pytest.raises(ArgumentError):
        bytes_from_host("text")


def test_image_from_host_mapping():
    data = bytearray(16)
    image = image_from_host({'data': data, 'width': 2, 'height': 2})
    data[0] = 255

    assert isinstance(image, PixelBuffer)
    assert image.data == bytes(16)


def test_image_from_host_does_not_check_length():
    image = image_from_host({'data': b"\x00", 'width': 5, 'height': 5})
    assert not image.is_valid()


@pytest.mark.parametrize("value", [
    None,
    b"\x00" * 4,
    {'width': 1, 'height': 1},
    {'data': b"\x00" * 4, 'height': 1},
    {'data': "oops", 'width': 1, 'height': 1},
    {'data': b"\x00" * 4, 'width': -1, 'height': 1},
])
def test_image_from_host_rejects_bad_shapes(value):
    with pytest.raises(ArgumentError):
        image_from_host(value)


def test_frames_from_host():
    frames = frames_from_host([{'data': b"\x00" * 4, 'width': 1, 'height': 1}] * 2)
    assert len(frames) == 2
    assert frames_from_host([]) == []
    assert frames_from_host(()) == []

    for bad in ("frames", b"\x00", {'data': b""}, 42, [None]):
        with pytest.raises(ArgumentError):
            frames_from_host(bad)


def test_host_output_shapes():
    image = PixelBuffer(1, 2, b"\x00" * 8)
    assert image_to_host(image) == {'data': b"\x00" * 8, 'width': 1, 'height': 2}

    frame = AnimatedFrame(image, delay=(105, 10), x_offset=3, y_offset=4)
    assert animated_frame_to_host(frame) == {
        'data': b"\x00" * 8,
        'width': 1,
        'height': 2,
        'delay': 10,
        'x': 3,
        'y': 4,
    }
