from __future__ import annotations

import os
import time

from .settings import ProxySettings


def check_marker(proxy: ProxySettings, max_age_s: float) -> tuple[bool, str, float | None]:
    """Check the liveness marker written on every applied change.

    Returns (is_fresh, message, age_s).
    """
    try:
        mtime = os.path.getmtime(proxy.marker_path)
    except FileNotFoundError:
        return False, "No change applied yet", None
    except OSError as e:
        return False, f"Error: {type(e).__name__}: {e}", None

    age_s = round(max(0.0, time.time() - mtime), 2)
    if age_s > max_age_s:
        return False, f"Last change applied {age_s:.0f}s ago", age_s
    return True, "Fresh", age_s
