import json
import re
from typing import Callable, Optional, Tuple
from urllib import error as urlerror
from urllib import request

import structlog

from openbook_cli import __version__

log = structlog.get_logger(__name__)

PACKAGE_NAME = "openbook-cli"


def version_tuple(version: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def fetch_latest_version(url: str, timeout: float = 10.0, opener: Optional[Callable] = None) -> str:
    req = request.Request(url, headers={"User-Agent": f"{PACKAGE_NAME}-updater", "Accept": "application/json"})
    opener = opener or request.urlopen
    try:
        with opener(req, timeout=timeout) as resp:
            raw = resp.read()
    except urlerror.HTTPError as exc:
        raise RuntimeError(f"{url}: HTTP {exc.code}") from exc
    except urlerror.URLError as exc:
        raise RuntimeError(f"{url}: {exc.reason}") from exc

    try:
        release = json.loads(raw)
        tag = release["tag_name"]
    except (ValueError, KeyError, TypeError) as exc:
        raise RuntimeError(f"{url}: unexpected release payload") from exc
    return tag.lstrip("v")


def check_for_update(url: str, current: str = __version__, fetch=fetch_latest_version) -> int:
    print(f"Current version: {current}")
    try:
        latest = fetch(url)
    except RuntimeError as e:
        log.error("update_check_failed", url=url, error=str(e))
        print(f"Error checking for updates: {e}")
        print(f"Try running: pip install --upgrade {PACKAGE_NAME}")
        return 1

    print(f"Latest version: {latest}")
    if version_tuple(latest) <= version_tuple(current):
        print("You're already running the latest version!")
        return 0

    print("New version available! Update with:")
    print(f"  pip install --upgrade {PACKAGE_NAME}=={latest}")
    return 0
