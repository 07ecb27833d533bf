"""
PIXEL RELAY - Settings

Codec constants and scheduler settings. Scheduler settings come from
DEFAULT_SETTINGS, optionally overlaid by a JSON file and explicit overrides.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

# Settings location
CONFIG_DIR = Path.home() / ".config" / "pixel-relay"
SETTINGS_FILE = CONFIG_DIR / "settings.json"

# Animation encoding
FRAME_DELAY_MS = 20          # every encoded frame is shown for 20ms (APNG: 20/1000 s)
GIF_DISPOSAL_BACKGROUND = 2  # restore to background
LOOP_FOREVER = 0

# GIF quantization (fast octree, the quick end of the speed/quality trade-off)
GIF_PALETTE_COLORS = 256

# Largest output buffer an operation will allocate (2 GiB)
MAX_BUFFER_BYTES = 2 ** 31

# Scheduler defaults. None for max_workers lets the memory manager decide,
# None for task_timeout_ms leaves execution time unbounded.
DEFAULT_SETTINGS = {
    'max_workers': None,
    'task_timeout_ms': None,
    'thread_name_prefix': 'pixel-relay',
}


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Dict[str, Any]:
    """
    Build the scheduler settings dict.

    Args:
        path: JSON file to read (default ~/.config/pixel-relay/settings.json).
              A missing file is not an error.
        overrides: Values that win over both defaults and the file.
                   Unknown keys raise KeyError.

    Returns:
        Dict with every key of DEFAULT_SETTINGS.
    """
    settings = dict(DEFAULT_SETTINGS)

    settings_path = Path(path) if path is not None else SETTINGS_FILE
    if settings_path.exists():
        with open(settings_path, 'r') as f:
            stored = json.load(f)
        if not isinstance(stored, dict):
            raise ValueError(f"Settings file must hold a JSON object: {settings_path}")
        for key, value in stored.items():
            if key in settings:
                settings[key] = value
            else:
                print(f"[Settings] Ignoring unknown key '{key}' in {settings_path}")

    for key, value in overrides.items():
        if key not in settings:
            raise KeyError(f"Unknown setting: {key}. Valid settings: {list(settings.keys())}")
        settings[key] = value

    _check_settings(settings)
    return settings


def _check_settings(settings: Dict[str, Any]):
    """Reject values the scheduler cannot use."""
    workers = settings.get('max_workers')
    if workers is not None and (not isinstance(workers, int) or isinstance(workers, bool) or workers < 1):
        raise ValueError(f"max_workers must be a positive integer, got {workers!r}")

    timeout = settings.get('task_timeout_ms')
    if timeout is not None and (not isinstance(timeout, int) or isinstance(timeout, bool) or timeout < 1):
        raise ValueError(f"task_timeout_ms must be a positive integer, got {timeout!r}")
