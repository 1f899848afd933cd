"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

_LANGUAGES = ("en", "my")


def _detect_local_tz() -> str:
    """Detect the system's IANA timezone name. Falls back to UTC."""
    # Debian/Ubuntu: plain text file with IANA name
    etc_tz = Path("/etc/timezone")
    if etc_tz.exists():
        name = etc_tz.read_text().strip()
        if name:
            return name

    # Most Linux/WSL: /etc/localtime is a symlink into zoneinfo
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        marker = "/zoneinfo/"
        idx = target.find(marker)
        if idx != -1:
            return target[idx + len(marker) :]

    return "UTC"


def _parse_hour_range(raw: str) -> tuple[int, int]:
    """Parse "8-20" into an inclusive (start, end) hour pair."""
    start_text, sep, end_text = raw.partition("-")
    if not sep:
        raise ValueError(raw)
    start, end = int(start_text), int(end_text)
    if not (0 <= start <= end <= 23):
        raise ValueError(raw)
    return start, end


DATA_DIR: Path = Path(os.environ.get("HYDRO_DATA_DIR") or Path.home() / ".hydro-reminders")
USER_NAME: str | None = os.environ.get("HYDRO_USER_NAME") or None
LANGUAGE: str = os.environ.get("HYDRO_LANGUAGE") or "en"
if LANGUAGE not in _LANGUAGES:
    print(f"HYDRO_LANGUAGE must be one of {', '.join(_LANGUAGES)}, got {LANGUAGE!r}", file=sys.stderr)
    raise SystemExit(1)

try:
    WAKING_HOURS: tuple[int, int] = _parse_hour_range(os.environ.get("HYDRO_WAKING_HOURS") or "8-20")
except ValueError:
    print("HYDRO_WAKING_HOURS must look like START-END with hours 0-23, e.g. 8-20", file=sys.stderr)
    raise SystemExit(1) from None

TZ: ZoneInfo = ZoneInfo(os.environ.get("HYDRO_TIMEZONE") or _detect_local_tz())
