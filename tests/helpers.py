"""Image builders shared by the test modules."""

import struct
from io import BytesIO

import numpy as np
from PIL import Image

from pixels import PixelBuffer


def solid(width, height, rgba):
    """PixelBuffer filled with a single RGBA colour."""
    arr = np.empty((height, width, 4), dtype=np.uint8)
    arr[:, :] = rgba
    return PixelBuffer.from_array(arr)


def solid_host(width, height, rgba):
    """Host image dict filled with a single RGBA colour."""
    image = solid(width, height, rgba)
    return {'data': image.data, 'width': image.width, 'height': image.height}


def pixels_of(image):
    """H x W x 4 array from a PixelBuffer or a host image dict."""
    if isinstance(image, dict):
        image = PixelBuffer(image['width'], image['height'], image['data'])
    return image.to_array()


def png_bytes(img):
    out = BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def gif_bytes(images, durations):
    out = BytesIO()
    images[0].save(
        out,
        format='GIF',
        save_all=True,
        append_images=images[1:],
        duration=durations,
        loop=0,
    )
    return out.getvalue()


def open_animation(data):
    return Image.open(BytesIO(data))


def _lzw_block(indices, min_code_size=2):
    """
    LZW image data that never grows the code table past its first size.

    A clear code before every pixel keeps codes min_code_size + 1 bits wide.
    """
    clear = 1 << min_code_size
    width = min_code_size + 1
    codes = []
    for index in indices:
        codes.extend((clear, index))
    codes.append(clear + 1)

    packed = bytearray()
    bits = nbits = 0
    for code in codes:
        bits |= code << nbits
        nbits += width
        while nbits >= 8:
            packed.append(bits & 0xFF)
            bits >>= 8
            nbits -= 8
    if nbits:
        packed.append(bits & 0xFF)

    out = bytearray([min_code_size])
    for i in range(0, len(packed), 255):
        chunk = packed[i:i + 255]
        out.append(len(chunk))
        out += chunk
    out.append(0)
    return bytes(out)


def raw_gif(width, height, palette, frames):
    """
    Assemble a GIF89a by hand.

    palette holds exactly four RGB tuples. Each frame is a dict with
    left, top, width, height, colour (palette index), disposal and delay
    (centiseconds).
    """
    out = bytearray(b"GIF89a")
    out += struct.pack('<HHBBB', width, height, 0x91, 0, 0)
    for rgb in palette:
        out += bytes(rgb)
    for frame in frames:
        out += b"\x21\xF9\x04" + bytes([frame['disposal'] << 2])
        out += struct.pack('<H', frame['delay']) + b"\x00\x00"
        out += b"\x2C" + struct.pack('<HHHHB', frame['left'], frame['top'], frame['width'], frame['height'], 0)
        out += _lzw_block([frame['colour']] * (frame['width'] * frame['height']))
    out += b";"
    return bytes(out)
