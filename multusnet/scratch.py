"""Per-container scratch files holding the delegates used on ADD.

ADD stores the delegate list under ``<data_dir>/<container_id>`` so that DEL
can tear down exactly the networks that were set up, even when the pod or
its annotations can no longer be read.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from multusnet.delegate import Delegate

logger = logging.getLogger(__name__)


def _scratch_path(container_id: str, data_dir: str | os.PathLike[str]) -> Path:
    return Path(data_dir) / container_id


def save_scratch_netconf(
    container_id: str, data_dir: str | os.PathLike[str], netconf: bytes
) -> Path:
    """Write ``netconf`` to the container's scratch file and return its path.

    The data directory is created with mode 0700 and a new file with 0600.
    """
    logger.debug("save_scratch_netconf: %s, %s, %r", container_id, data_dir, netconf)
    try:
        os.makedirs(data_dir, mode=0o700, exist_ok=True)
    except OSError as exc:
        logger.error(
            "save_scratch_netconf: failed to create the multus data directory(%r): %s",
            str(data_dir),
            exc,
        )
        raise
    path = _scratch_path(container_id, data_dir)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(netconf)
    except OSError as exc:
        logger.error(
            "save_scratch_netconf: failed to write container data in the path(%r): %s",
            str(path),
            exc,
        )
        raise
    return path


def consume_scratch_netconf(
    container_id: str, data_dir: str | os.PathLike[str]
) -> tuple[bytes, Path]:
    """Read the container's scratch file, returning its bytes and its path.

    Raises FileNotFoundError when nothing was saved for the container.
    """
    logger.debug("consume_scratch_netconf: %s, %s", container_id, data_dir)
    path = _scratch_path(container_id, data_dir)
    return path.read_bytes(), path


def save_delegates(
    container_id: str,
    data_dir: str | os.PathLike[str],
    delegates: Iterable[Delegate],
) -> Path:
    """Store the delegate list for a container and return the file's path."""
    delegates = list(delegates)
    logger.debug("save_delegates: %s, %s, %r", container_id, data_dir, delegates)
    payload = json.dumps(
        [delegate.to_dict() for delegate in delegates], separators=(",", ":")
    ).encode()
    return save_scratch_netconf(container_id, data_dir, payload)


def load_delegates(
    container_id: str, data_dir: str | os.PathLike[str]
) -> list[Delegate]:
    """Read back the delegates stored for a container.

    Delegates whose configuration list names plugins are marked as list
    plugins, and the first delegate is marked as the master plugin.
    Raises FileNotFoundError when nothing was stored and ValueError when the
    file does not hold a delegate list.
    """
    data, path = consume_scratch_netconf(container_id, data_dir)
    try:
        entries = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"failed to load netconf from {path}: {exc}") from exc
    if not isinstance(entries, list):
        raise ValueError(f"failed to load netconf from {path}: not a list")
    delegates = [Delegate.from_dict(entry) for entry in entries]
    if delegates:
        delegates[0].master_plugin = True
    return delegates


def delete_delegates(container_id: str, data_dir: str | os.PathLike[str]) -> None:
    """Remove the delegates stored for a container.

    Raises FileNotFoundError when nothing was stored.
    """
    logger.debug("delete_delegates: %s, %s", container_id, data_dir)
    path = _scratch_path(container_id, data_dir)
    try:
        path.unlink()
    except OSError as exc:
        logger.error("delete_delegates: error in deleting the delegates : %s", exc)
        raise