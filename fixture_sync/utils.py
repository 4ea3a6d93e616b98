from __future__ import annotations

import logging
import os
import pathlib
import tempfile
from datetime import datetime, timezone
from typing import Any

import orjson

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def ensure_dir(p: str | pathlib.Path) -> None:
    pathlib.Path(p).mkdir(parents=True, exist_ok=True)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def write_json(path: str | pathlib.Path, data: Any, *, sort_keys: bool = False) -> None:
    """Pretty-print ``data`` to ``path``, replacing the old file in one step."""
    path = pathlib.Path(path)
    ensure_dir(path.parent)
    option = orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE
    if sort_keys:
        option |= orjson.OPT_SORT_KEYS
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(orjson.dumps(data, option=option))
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise


def read_json(path: str | pathlib.Path) -> Any:
    return orjson.loads(pathlib.Path(path).read_bytes())


def read_env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(name, default)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
