"""Default-gateway edits for cached CNI results.

The CNI runtime caches each network's ADD result under
``<cache_dir>/results/<net>-<container>-<ifname>``. When the default route of
an interface is replaced or removed, the cached result has to be rewritten to
match, so that later CHECK and DEL calls see the routes actually in place.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

GatewayLike = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]

IPV4_DEFAULT_DST = "0.0.0.0/0"
IPV6_DEFAULT_DST = "::0/0"
# Results of the oldest spec versions use the compressed form.
IPV6_DEFAULT_DST_LEGACY = "::/0"

_LEGACY_VERSIONS = frozenset({"0.1.0", "0.2.0"})
_SUPPORTED_VERSIONS = frozenset({"0.3.0", "0.3.1", "0.4.0", "1.0.0"})


class GatewayCacheError(ValueError):
    """A cached result could not be read or rewritten."""


def _is_legacy(result: dict[str, Any]) -> bool:
    """Tell whether ``result`` follows the 0.1.0/0.2.0 layout.

    Raises GatewayCacheError for a malformed or unsupported ``cniVersion``.
    """
    if "cniVersion" not in result:
        return True
    version = result["cniVersion"]
    if not isinstance(version, str):
        raise GatewayCacheError(f"wrong cniVersion format: {version!r}")
    if version in _LEGACY_VERSIONS:
        return True
    if version not in _SUPPORTED_VERSIONS:
        raise GatewayCacheError(f"not supported version: {version}")
    return False


def _without_dst(routes: list[Any], dst: str) -> list[Any]:
    """Return ``routes`` less every route whose ``dst`` equals ``dst``."""
    kept = []
    for route in routes:
        if not isinstance(route, dict):
            raise GatewayCacheError(f"wrong route format: {route!r}")
        if "dst" in route:
            route_dst = route["dst"]
            if not isinstance(route_dst, str):
                raise GatewayCacheError(f"wrong dst format: {route_dst!r}")
            if route_dst == dst:
                continue
        kept.append(route)
    return kept


def _section(result: dict[str, Any], key: str) -> dict[str, Any] | None:
    if key not in result:
        return None
    section = result[key]
    if not isinstance(section, dict):
        raise GatewayCacheError(f"wrong {key} format: {section!r}")
    return section


def _routes_of(container: dict[str, Any], label: str) -> list[Any] | None:
    if "routes" not in container:
        return None
    routes = container["routes"]
    if not isinstance(routes, list):
        raise GatewayCacheError(f"wrong {label} format: {routes!r}")
    return routes


def _as_ip(gateway: GatewayLike) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Parse a gateway, folding IPv4-mapped IPv6 addresses to IPv4."""
    try:
        address = ipaddress.ip_address(gateway)
    except ValueError as exc:
        raise GatewayCacheError(f"invalid gateway address: {gateway!r}") from exc
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def delete_default_gw_result(
    result: dict[str, Any], ipv4: bool, ipv6: bool
) -> dict[str, Any]:
    """Drop default routes of the chosen families from a CNI result.

    The result is edited in place and also returned.
    """
    if _is_legacy(result):
        for wanted, key, dst in (
            (ipv4, "ip4", IPV4_DEFAULT_DST),
            (ipv6, "ip6", IPV6_DEFAULT_DST),
        ):
            if not wanted:
                continue
            section = _section(result, key)
            if section is None:
                continue
            routes = _routes_of(section, f"{key} routes")
            if routes is not None:
                section["routes"] = _without_dst(routes, dst)
        return result

    routes = _routes_of(result, "routes")
    if routes is None:
        return result
    if ipv4:
        routes = _without_dst(routes, IPV4_DEFAULT_DST)
    if ipv6:
        routes = _without_dst(routes, IPV6_DEFAULT_DST)
    result["routes"] = routes
    return result


def add_default_gw_result(
    result: dict[str, Any], gateways: Iterable[GatewayLike]
) -> dict[str, Any]:
    """Append a default route for each gateway to a CNI result.

    The result is edited in place and also returned. For 0.1.0/0.2.0 results a
    route is only added where the matching ``ip4``/``ip6`` section exists.
    """
    addresses = [_as_ip(gw) for gw in gateways]

    if _is_legacy(result):
        for address in addresses:
            if address.version == 4:
                key, dst = "ip4", IPV4_DEFAULT_DST
            else:
                key, dst = "ip6", IPV6_DEFAULT_DST_LEGACY
            section = _section(result, key)
            if section is None:
                continue
            routes = _routes_of(section, f"{key} routes") or []
            section["routes"] = [*routes, {"dst": dst, "gw": str(address)}]
        return result

    routes = list(_routes_of(result, "routes") or [])
    for address in addresses:
        dst = IPV4_DEFAULT_DST if address.version == 4 else IPV6_DEFAULT_DST
        routes.append({"dst": dst, "gw": str(address)})
    result["routes"] = routes
    return result


def _load_cache(cache: bytes | str) -> dict[str, Any]:
    try:
        info = json.loads(cache)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise GatewayCacheError(f"cannot decode cache: {exc}") from exc
    if not isinstance(info, dict):
        raise GatewayCacheError(f"cache is not a JSON object: {info!r}")
    if "result" not in info:
        raise GatewayCacheError("cannot get result from cache")
    if not isinstance(info["result"], dict):
        raise GatewayCacheError(f"wrong result type: {info['result']!r}")
    return info


def _dump_cache(info: dict[str, Any]) -> bytes:
    return json.dumps(info, sort_keys=True, separators=(",", ":")).encode()


def delete_default_gw_cache_bytes(cache: bytes | str, ipv4: bool, ipv6: bool) -> bytes:
    """Return the cache document with default routes removed from its result."""
    info = _load_cache(cache)
    info["result"] = delete_default_gw_result(info["result"], ipv4, ipv6)
    return _dump_cache(info)


def add_default_gw_cache_bytes(
    cache: bytes | str, gateways: Iterable[GatewayLike]
) -> bytes:
    """Return the cache document with default routes added to its result."""
    info = _load_cache(cache)
    info["result"] = add_default_gw_result(info["result"], gateways)
    return _dump_cache(info)


def cache_file_path(
    cache_dir: str | os.PathLike[str], net_name: str, container_id: str, if_name: str
) -> Path:
    """Path of the cached result for one network attachment."""
    return Path(cache_dir) / "results" / f"{net_name}-{container_id}-{if_name}"


def _write_private(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)


def delete_default_gw_cache(
    cache_dir: str | os.PathLike[str],
    net_name: str,
    container_id: str,
    if_name: str,
    ipv4: bool,
    ipv6: bool,
) -> None:
    """Rewrite a cached result file without its default routes."""
    path = cache_file_path(cache_dir, net_name, container_id, if_name)
    cache = path.read_bytes()
    logger.debug("delete_default_gw_cache: update cache to delete GW from: %s", cache)
    new_cache = delete_default_gw_cache_bytes(cache, ipv4, ipv6)
    logger.debug("delete_default_gw_cache: update cache to delete GW: %s", new_cache)
    _write_private(path, new_cache)


def add_default_gw_cache(
    cache_dir: str | os.PathLike[str],
    net_name: str,
    container_id: str,
    if_name: str,
    gateways: Iterable[GatewayLike],
) -> None:
    """Rewrite a cached result file with default routes via ``gateways``."""
    path = cache_file_path(cache_dir, net_name, container_id, if_name)
    cache = path.read_bytes()
    logger.debug("add_default_gw_cache: update cache to add GW from: %s", cache)
    new_cache = add_default_gw_cache_bytes(cache, gateways)
    logger.debug("add_default_gw_cache: update cache to add GW: %s", new_cache)
    _write_private(path, new_cache)