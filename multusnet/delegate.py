"""Delegate network configurations and the per-delegate decisions made on ADD."""

from __future__ import annotations

import base64
import ipaddress
import string
from dataclasses import dataclass, field
from typing import Any

VERSION = "master@git"
COMMIT = "unknown commit"
DATE = "unknown date"
GIT_TREE_STATE = ""
RELEASE_STATUS = ""

_HEX = frozenset(string.hexdigits)


def version_string() -> str:
    """Describe the build: version, tree state, commit and date."""
    return (
        f"version:{VERSION}({GIT_TREE_STATE}{RELEASE_STATUS}), "
        f"commit:{COMMIT}, date:{DATE}"
    )


@dataclass
class Delegate:
    """One network a pod is attached to, with the requests made for it."""

    conf: dict[str, Any] = field(default_factory=dict)
    conf_list: dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""
    name: str = ""
    ifname_request: str = ""
    mac_request: str = ""
    ip_request: list[str] | None = None
    gateway_request: list[str] | None = None
    master_plugin: bool = False
    conflist_plugin: bool = False
    filter_v4_gateway: bool = False
    filter_v6_gateway: bool = False
    resource_name: str = ""
    device_id: str = ""

    @property
    def net_name(self) -> str:
        """Network name: the single plugin's name, else the list's name."""
        return self.conf.get("name", "") or self.conf_list.get("name", "")

    @property
    def conf_name(self) -> str:
        """Name of the configuration actually invoked."""
        source = self.conf_list if self.conflist_plugin else self.conf
        return source.get("name", "")

    @property
    def plugin_type(self) -> str:
        return self.conf.get("type", "")

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible mapping."""
        return {
            "conf": dict(self.conf),
            "confList": dict(self.conf_list),
            "bytes": base64.b64encode(self.raw).decode("ascii"),
            "name": self.name,
            "ifnameRequest": self.ifname_request,
            "macRequest": self.mac_request,
            "ipRequest": None if self.ip_request is None else list(self.ip_request),
            "gatewayRequest": (
                None if self.gateway_request is None else list(self.gateway_request)
            ),
            "masterPlugin": self.master_plugin,
            "confListPlugin": self.conflist_plugin,
            "isFilterV4Gateway": self.filter_v4_gateway,
            "isFilterV6Gateway": self.filter_v6_gateway,
            "resourceName": self.resource_name,
            "deviceID": self.device_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Delegate:
        """Build a delegate from a mapping made by :meth:`to_dict`.

        A configuration list that names plugins marks the delegate as a
        list plugin even if the flag itself was not stored.
        """
        if not isinstance(data, dict):
            raise ValueError(f"delegate must be a JSON object: {data!r}")
        conf_list = dict(data.get("confList") or {})
        raw_text = data.get("bytes") or ""
        try:
            raw = base64.b64decode(raw_text, validate=True)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"invalid delegate bytes: {raw_text!r}") from exc
        ip_request = data.get("ipRequest")
        gateway_request = data.get("gatewayRequest")
        return cls(
            conf=dict(data.get("conf") or {}),
            conf_list=conf_list,
            raw=raw,
            name=data.get("name", ""),
            ifname_request=data.get("ifnameRequest", ""),
            mac_request=data.get("macRequest", ""),
            ip_request=None if ip_request is None else list(ip_request),
            gateway_request=None if gateway_request is None else list(gateway_request),
            master_plugin=bool(data.get("masterPlugin", False)),
            conflist_plugin=bool(data.get("confListPlugin", False))
            or bool(conf_list.get("plugins")),
            filter_v4_gateway=bool(data.get("isFilterV4Gateway", False)),
            filter_v6_gateway=bool(data.get("isFilterV6Gateway", False)),
            resource_name=data.get("resourceName", ""),
            device_id=data.get("deviceID", ""),
        )


@dataclass(frozen=True)
class GatewayPlan:
    """What to do with default routes after a delegate's ADD."""

    delete_v4: bool = False
    delete_v6: bool = False
    add_default: bool = False
    gateways: tuple[str, ...] = ()

    @property
    def deletes(self) -> bool:
        return self.delete_v4 or self.delete_v6


def interface_name(delegate: Delegate, default_ifname: str, index: int) -> str:
    """Interface name for the delegate at ``index`` in the delegate list."""
    if delegate.ifname_request:
        return delegate.ifname_request
    if delegate.master_plugin:
        return default_ifname
    return f"net{index}"


def _is_mac(text: str) -> bool:
    if len(text) < 14:
        return False
    if text[2] in ":-":
        parts = text.split(text[2])
        width, counts = 2, (6, 8, 20)
    elif text[4] == ".":
        parts = text.split(".")
        width, counts = 4, (3, 4, 10)
    else:
        return False
    return len(parts) in counts and all(
        len(part) == width and set(part) <= _HEX for part in parts
    )


def _is_ip(text: str) -> bool:
    if "%" in text:
        return False
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def _is_cidr(text: str) -> bool:
    address, _, prefix = text.partition("/")
    if not _is_ip(address) or not (prefix.isascii() and prefix.isdigit()):
        return False
    return int(prefix) <= ipaddress.ip_address(address).max_prefixlen


def request_args(delegate: Delegate) -> list[tuple[str, str]]:
    """Extra CNI arguments carrying the delegate's MAC and IP requests.

    Raises ValueError when a requested address cannot be parsed.
    """
    args: list[tuple[str, str]] = []
    if delegate.mac_request:
        if not _is_mac(delegate.mac_request):
            raise ValueError(
                f"DelegateAdd: failed to parse mac address {delegate.mac_request!r}"
            )
        args.append(("MAC", delegate.mac_request))
    if delegate.ip_request is not None:
        for ip in delegate.ip_request:
            valid = _is_cidr(ip) if "/" in ip else _is_ip(ip)
            if not valid:
                raise ValueError(f"DelegateAdd: failed to parse IP address {ip!r}")
        args.append(("IP", ",".join(delegate.ip_request)))
    return args


def plan_gateways(delegate: Delegate) -> GatewayPlan:
    """Decide which default routes to remove and whether to add new ones."""
    override = bool(delegate.gateway_request)
    delete_v4 = delete_v6 = add_default = False
    if delegate.filter_v4_gateway:
        delete_v4 = True
    elif override:
        delete_v4 = add_default = True
    if delegate.filter_v6_gateway:
        delete_v6 = True
    elif override:
        delete_v6 = add_default = True
    gateways = tuple(delegate.gateway_request) if add_default else ()
    return GatewayPlan(delete_v4, delete_v6, add_default, gateways)