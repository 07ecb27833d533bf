#!/usr/bin/env python3
"""
PIXEL RELAY - Command Line Host

Runs the image operations from the command line. A QCoreApplication plays the
host: every operation is submitted to the image service and waited on from
the main thread. Input images are PNG files, still outputs are written as PNG.
"""

import argparse
import sys

import cv2
import numpy as np
from PySide6.QtCore import QCoreApplication

from pixels import ImageTaskError
from services.image_service import ImageService
from settings import load_settings


def _read_bytes(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def _load_png(service: ImageService, path: str) -> dict:
    return service.decode_png(_read_bytes(path)).wait()


def _save_png(image: dict, path: str):
    """Write a host image dict as PNG."""
    rgba = np.frombuffer(image['data'], dtype=np.uint8).reshape(image['height'], image['width'], 4)
    if not cv2.imwrite(path, cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)):
        raise IOError(f"Could not write image: {path}")


def _write_bytes(data: bytes, path: str):
    with open(path, 'wb') as f:
        f.write(data)


def cmd_info(service: ImageService, args) -> int:
    for key, value in service.scheduler.get_resource_summary().items():
        print(f"{key}: {value}")
    return 0


def cmd_decode_png(service: ImageService, args) -> int:
    image = _load_png(service, args.input)
    print(f"Image: {args.input} ({image['width']}x{image['height']}, {len(image['data'])} bytes RGBA)")
    return 0


def cmd_decode_gif(service: ImageService, args) -> int:
    frames = service.decode_gif(_read_bytes(args.input)).wait()
    print(f"Animation: {args.input} ({len(frames)} frames)")
    for i, frame in enumerate(frames):
        print(f"  Frame {i}: {frame['width']}x{frame['height']} at ({frame['x']}, {frame['y']}), delay={frame['delay']}ms")
    return 0


def cmd_resize(service: ImageService, args) -> int:
    image = _load_png(service, args.input)
    resized = service.resize_image(image, args.size, preserve_aspect=args.keep_aspect).wait()
    _save_png(resized, args.output)
    print(f"Resized {image['width']}x{image['height']} -> {resized['width']}x{resized['height']}: {args.output}")
    return 0


def cmd_composite(service: ImageService, args) -> int:
    base = _load_png(service, args.base)
    overlay = _load_png(service, args.overlay)
    result = service.composite_image(base, overlay, args.x, args.y).wait()
    _save_png(result, args.output)
    print(f"Composited {args.overlay} at ({args.x}, {args.y}): {args.output}")
    return 0


def cmd_encode(service: ImageService, args) -> int:
    # Decode every input concurrently, then wait for them in order
    handles = [service.decode_png(_read_bytes(path)) for path in args.inputs]
    frames = [handle.wait() for handle in handles]

    if args.command == 'encode-gif':
        data = service.encode_gif(frames).wait()
    else:
        data = service.encode_apng(frames).wait()

    _write_bytes(data, args.output)
    print(f"Encoded {len(frames)} frames ({len(data)} bytes): {args.output}")
    return 0


COMMANDS = {
    'info': cmd_info,
    'decode-png': cmd_decode_png,
    'decode-gif': cmd_decode_gif,
    'resize': cmd_resize,
    'composite': cmd_composite,
    'encode-gif': cmd_encode,
    'encode-apng': cmd_encode,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Pixel Relay image operations')
    parser.add_argument('--workers', type=int, default=None, help='Worker thread count')
    parser.add_argument('--timeout-ms', type=int, default=None, help='Execution bound per task')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('info', help='Show worker pool and memory information')

    p = sub.add_parser('decode-png', help='Decode a PNG and report its size')
    p.add_argument('input')

    p = sub.add_parser('decode-gif', help='Decode a GIF and list its frames')
    p.add_argument('input')

    p = sub.add_parser('resize', help='Resize a PNG to SIZE x SIZE')
    p.add_argument('input')
    p.add_argument('size', type=int)
    p.add_argument('--keep-aspect', action='store_true', help='Fit within SIZE x SIZE instead')
    p.add_argument('--output', '-o', required=True)

    p = sub.add_parser('composite', help='Draw OVERLAY over BASE at (X, Y)')
    p.add_argument('base')
    p.add_argument('overlay')
    p.add_argument('x', type=int)
    p.add_argument('y', type=int)
    p.add_argument('--output', '-o', required=True)

    for name in ('encode-gif', 'encode-apng'):
        p = sub.add_parser(name, help=f"Encode PNG frames as {name.split('-')[1].upper()}")
        p.add_argument('inputs', nargs='+')
        p.add_argument('--output', '-o', required=True)

    return parser


def main(argv=None) -> int:
    # Parse arguments before QCoreApplication consumes sys.argv
    args = build_parser().parse_args(argv)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)

    overrides = {}
    if args.workers is not None:
        overrides['max_workers'] = args.workers
    if args.timeout_ms is not None:
        overrides['task_timeout_ms'] = args.timeout_ms
    service = ImageService(settings=load_settings(**overrides))

    try:
        return COMMANDS[args.command](service, args)
    except ImageTaskError as e:
        print(f"Error: {e}")
        return 1
    except (OSError, TypeError, ValueError) as e:
        print(f"Error: {e}")
        return 2
    finally:
        service.shutdown()


if __name__ == "__main__":
    sys.exit(main())
