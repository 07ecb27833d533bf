"""
PIXEL RELAY - Image Processing Core

The image operations run by worker threads: resize, alpha composite,
PNG/GIF decoding and GIF/APNG animation encoding.

Every function is pure: inputs are read, never mutated, and a new buffer is
returned. Failures are raised as InvalidImage, DecodeError or EncodeError and
nothing partial is ever returned. Bitstream work is delegated to Pillow,
resampling to OpenCV.
"""

from io import BytesIO
from typing import List, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from pixels import (
    BYTES_PER_PIXEL,
    AnimatedFrame,
    DecodeError,
    EncodeError,
    InvalidImage,
    PixelBuffer,
)
from settings import (
    FRAME_DELAY_MS,
    GIF_DISPOSAL_BACKGROUND,
    GIF_PALETTE_COLORS,
    LOOP_FOREVER,
    MAX_BUFFER_BYTES,
)

# Last palette entry is kept free for transparent pixels
GIF_TRANSPARENT_INDEX = GIF_PALETTE_COLORS - 1


# =============================================================================
# RESIZE
# =============================================================================

def fit_within(width: int, height: int, size: int) -> Tuple[int, int]:
    """Largest (w, h) with the same aspect ratio that fits in size x size."""
    scale = min(size / width, size / height)
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def resize_image(image: PixelBuffer, size: int, preserve_aspect: bool = False) -> PixelBuffer:
    """
    Resample an image with a triangle (bilinear) filter, area-averaged
    when shrinking.

    Args:
        image: Source pixels
        size: Target side length. Used for both width and height, so a
              non-square source is squashed into a square.
        preserve_aspect: Fit within size x size instead, keeping the
                         source aspect ratio.

    Returns:
        New PixelBuffer, size x size unless preserve_aspect is set.
    """
    image.validate()
    if size <= 0:
        raise InvalidImage("Invalid target size")
    if image.width == 0 or image.height == 0:
        raise InvalidImage("Cannot resize an empty image")

    if preserve_aspect:
        new_w, new_h = fit_within(image.width, image.height, size)
    else:
        new_w, new_h = size, size

    if new_w * new_h * BYTES_PER_PIXEL > MAX_BUFFER_BYTES:
        raise InvalidImage("Target size too large")

    src = image.to_array()
    if (new_w, new_h) == (image.width, image.height):
        return PixelBuffer.from_array(src)

    # Area averaging widens the footprint when shrinking, bilinear when enlarging
    if new_w <= image.width and new_h <= image.height:
        interpolation = cv2.INTER_AREA
    else:
        interpolation = cv2.INTER_LINEAR

    try:
        resized = cv2.resize(src, (new_w, new_h), interpolation=interpolation)
    except (cv2.error, MemoryError) as e:
        raise InvalidImage("Couldn't allocate resized image") from e
    return PixelBuffer.from_array(resized)


# =============================================================================
# COMPOSITE
# =============================================================================

def _blend_source_over(dst: np.ndarray, src: np.ndarray) -> np.ndarray:
    """Porter-Duff source-over of non-premultiplied RGBA uint8 arrays."""
    dst_f = dst.astype(np.float32) / 255.0
    src_f = src.astype(np.float32) / 255.0

    src_a = src_f[..., 3:4]
    dst_a = dst_f[..., 3:4]
    out_a = src_a + dst_a * (1.0 - src_a)

    with np.errstate(divide='ignore', invalid='ignore'):
        out_rgb = (src_f[..., :3] * src_a + dst_f[..., :3] * dst_a * (1.0 - src_a)) / out_a
    # Both pixels fully transparent: keep the base colour
    out_rgb = np.where(out_a > 0, out_rgb, dst_f[..., :3])

    out = np.concatenate([out_rgb, out_a], axis=-1)
    return np.clip(np.rint(out * 255.0), 0, 255).astype(np.uint8)


def composite_image(base: PixelBuffer, overlay: PixelBuffer, x: int, y: int) -> PixelBuffer:
    """
    Alpha-composite overlay onto base with its top-left corner at (x, y).

    Overlay pixels falling outside base are clipped. The result has base's
    dimensions; base itself is left untouched.
    """
    base.validate("Invalid bottom image")
    overlay.validate("Invalid top image")

    canvas = base.to_array().copy()

    # Visible part of the overlay
    w = min(overlay.width, base.width - x)
    h = min(overlay.height, base.height - y)
    if w > 0 and h > 0:
        top = overlay.to_array()[:h, :w]
        canvas[y:y + h, x:x + w] = _blend_source_over(canvas[y:y + h, x:x + w], top)

    return PixelBuffer.from_array(canvas)


# =============================================================================
# DECODING
# =============================================================================

def _pil_to_buffer(img: Image.Image) -> PixelBuffer:
    if img.mode != 'RGBA':
        img = img.convert('RGBA')
    return PixelBuffer(width=img.width, height=img.height, data=img.tobytes())


def decode_png(data: bytes) -> PixelBuffer:
    """Decode a PNG bitstream to RGBA, whatever its colour type."""
    try:
        with Image.open(BytesIO(data), formats=['PNG']) as img:
            img.load()
            return _pil_to_buffer(img)
    except Exception as e:
        raise DecodeError("Invalid PNG image") from e


def _is_frameless_gif(data: bytes) -> bool:
    """
    Check for a well-formed GIF that holds no image at all.

    That is a header, logical screen descriptor and optional global colour
    table followed by nothing but extension blocks and the trailer.
    """
    if len(data) < 13 or data[:6] not in (b"GIF87a", b"GIF89a"):
        return False

    flags = data[10]
    pos = 13
    if flags & 0x80:
        pos += 3 * (2 << (flags & 0x07))

    while pos < len(data):
        block = data[pos]
        if block == 0x3B:  # trailer
            return True
        if block != 0x21 or pos + 1 >= len(data):
            return False
        # Extension: label, then data sub-blocks up to a zero length
        pos += 2
        while pos < len(data) and data[pos]:
            pos += data[pos] + 1
        pos += 1
    return False


def decode_gif(data: bytes) -> List[AnimatedFrame]:
    """
    Decode every frame of a GIF, in source order.

    Each frame is the whole canvas as it looks once that frame is drawn, with
    the previous frames' disposal methods already applied, so its offsets are
    (0, 0). Delays are reported as (milliseconds, 1). A GIF without any image
    decodes to an empty list.

    All-or-nothing: a bad header or any frame that fails to decode raises
    DecodeError and no frames are returned.
    """
    try:
        img = Image.open(BytesIO(data), formats=['GIF'])
    except Exception as e:
        if _is_frameless_gif(data):
            return []
        raise DecodeError("Invalid GIF image") from e

    frames: List[AnimatedFrame] = []
    with img:
        try:
            for index in range(getattr(img, 'n_frames', 1)):
                img.seek(index)
                duration = int(img.info.get('duration', 0))
                frames.append(AnimatedFrame(
                    image=_pil_to_buffer(img),
                    delay=(duration, 1),
                ))
        except Exception as e:
            raise DecodeError("Invalid image data") from e

    return frames


# =============================================================================
# ENCODING
# =============================================================================

def _frames_to_pil(frames: Sequence[PixelBuffer]) -> List[Image.Image]:
    """
    Validate frames and lay each one on a canvas the size of the first.

    Frames are full-canvas frames placed at (0, 0): smaller ones are padded
    with transparent pixels, larger ones cropped.
    """
    if not frames:
        raise InvalidImage("No frames supplied")
    for frame in frames:
        frame.validate("Invalid image data")

    canvas_size = (frames[0].width, frames[0].height)
    images = []
    for frame in frames:
        img = Image.frombytes('RGBA', (frame.width, frame.height), frame.data)
        if img.size != canvas_size:
            padded = Image.new('RGBA', canvas_size, (0, 0, 0, 0))
            padded.paste(img, (0, 0))
            img = padded
        images.append(img)
    return images


def _to_paletted(img: Image.Image) -> Image.Image:
    """
    Quantize an RGBA image for GIF.

    Colours go through the fast octree quantizer; fully transparent pixels
    are mapped to a reserved palette entry marked as the transparent index.
    """
    quantized = img.convert('RGB').quantize(
        colors=GIF_PALETTE_COLORS - 1,
        method=Image.Quantize.FASTOCTREE,
    )
    indices = np.asarray(quantized, dtype=np.uint8).copy()
    transparent = np.asarray(img)[..., 3] == 0
    if transparent.any():
        indices[transparent] = GIF_TRANSPARENT_INDEX

    palette = (quantized.getpalette() or [])[:GIF_TRANSPARENT_INDEX * 3]
    palette += [0] * (GIF_PALETTE_COLORS * 3 - len(palette))

    paletted = Image.frombytes('P', img.size, indices.tobytes())
    paletted.putpalette(palette)
    if transparent.any():
        paletted.info['transparency'] = GIF_TRANSPARENT_INDEX
    return paletted


def encode_gif(frames: Sequence[PixelBuffer]) -> bytes:
    """
    Encode frames as an infinitely looping GIF.

    Each frame is quantized to its own palette, shown for 20ms and disposed
    by restoring to background. Identical consecutive frames are merged by
    the encoder, their delays summed.
    """
    images = _frames_to_pil(frames)

    out = BytesIO()
    try:
        paletted = [_to_paletted(img) for img in images]
        paletted[0].save(
            out,
            format='GIF',
            save_all=True,
            append_images=paletted[1:],
            duration=FRAME_DELAY_MS,
            loop=LOOP_FOREVER,
            disposal=GIF_DISPOSAL_BACKGROUND,
            optimize=False,
        )
    except Exception as e:
        raise EncodeError("Couldn't encode GIF") from e
    return out.getvalue()


def encode_apng(frames: Sequence[PixelBuffer]) -> bytes:
    """
    Encode frames as an infinitely looping APNG, 20/1000 s per frame.

    Default disposal (none) and blend (source) operations are used.
    """
    images = _frames_to_pil(frames)

    out = BytesIO()
    try:
        images[0].save(
            out,
            format='PNG',
            save_all=True,
            append_images=images[1:],
            duration=FRAME_DELAY_MS,
            loop=LOOP_FOREVER,
        )
    except Exception as e:
        raise EncodeError("Couldn't encode APNG") from e
    return out.getvalue()
