# multusnet

Helpers for plugins that attach a container to several networks at once:
working out each delegate network's interface name and request arguments,
keeping a per-container file of the delegates that were added, and rewriting
cached CNI results when a default gateway is removed or overridden.

## Install

```
pip install multusnet
pip install "multusnet[test]"   # with the test requirements
```

## Delegates

`multusnet.delegate.Delegate` is a dataclass describing one network a
container is attached to: its plugin configuration (`conf`) or configuration
list (`conf_list`), the raw configuration bytes, and the interface name, MAC,
IP and gateway requests made for it.

```python
from multusnet.delegate import Delegate, interface_name, request_args, plan_gateways

delegate = Delegate.from_dict({
    "name": "macvlan-conf",
    "conf": {"name": "macvlan", "type": "macvlan"},
    "ipRequest": ["10.1.1.5/24"],
    "gatewayRequest": ["10.1.1.1"],
})

interface_name(delegate, "eth0", 1)   # "net1"
request_args(delegate)                # [("IP", "10.1.1.5/24")]
plan = plan_gateways(delegate)        # GatewayPlan(delete_v4=True, delete_v6=True,
                                      #             add_default=True, gateways=("10.1.1.1",))
```

- `interface_name` returns the requested interface name if there is one, the
  runtime's interface name for the master plugin, and `net<index>` otherwise.
- `request_args` returns `("MAC", ...)` and `("IP", ...)` arguments for the
  delegate's requests, and raises `ValueError` if a MAC address, IP address or
  CIDR cannot be parsed. Several IP requests are joined with commas.
- `plan_gateways` returns a frozen `GatewayPlan`. A filtered family has its
  default route deleted; a non-empty gateway request deletes the default route
  of each unfiltered family and asks for new ones via the requested gateways.
  `GatewayPlan.deletes` tells whether anything is to be deleted.
- `Delegate.to_dict` and `Delegate.from_dict` convert to and from a
  JSON-compatible mapping; the raw bytes are stored base64-encoded. A
  configuration list that names plugins marks the delegate as a list plugin.
- `Delegate.net_name`, `Delegate.conf_name` and `Delegate.plugin_type` give
  the names used in messages and cache file names.

`version_string()` reports the build version, commit and date.

## Delegate files

```python
from multusnet.scratch import save_delegates, load_delegates, delete_delegates

save_delegates("container-id", "/var/lib/cni/multus", [delegate])
delegates = load_delegates("container-id", "/var/lib/cni/multus")
delete_delegates("container-id", "/var/lib/cni/multus")
```

Delegates are stored as JSON in `<data_dir>/<container_id>`; the directory is
created with mode 0700 and the file with 0600. `load_delegates` marks the
first delegate as the master plugin, raises `FileNotFoundError` if nothing was
saved and `ValueError` if the file does not hold a delegate list.
`delete_delegates` raises `FileNotFoundError` if there is nothing to remove.
`save_scratch_netconf` and `consume_scratch_netconf` work with the raw bytes
and return the file's path.

## Gateway edits in the result cache

A CNI result is cached under `<cache_dir>/results/<net>-<container>-<ifname>`
(`cache_file_path` builds that path). When a default route is removed from an
interface, or a different gateway is set, the cached result can be brought in
line:

```python
from multusnet.gwcache import delete_default_gw_cache, add_default_gw_cache

delete_default_gw_cache("/var/lib/cni/multus", "net-a", "container-id", "net1", True, False)
add_default_gw_cache("/var/lib/cni/multus", "net-a", "container-id", "net1", ["10.1.1.1"])
```

Gateways may be strings or `ipaddress` objects. Results of CNI versions 0.1.0
and 0.2.0 (with `ip4`/`ip6` sections; a route is only added where the section
exists) and of 0.3.0, 0.3.1, 0.4.0 and 1.0.0 (with a top-level `routes` list)
are handled. A result without `cniVersion` is treated as 0.1.0/0.2.0. Any
other version, malformed cache content or an invalid gateway raises
`GatewayCacheError`, a subclass of `ValueError`.

`delete_default_gw_cache_bytes` and `add_default_gw_cache_bytes` do the same
on a cache document held in memory and return compact JSON bytes;
`delete_default_gw_result` and `add_default_gw_result` edit a result
dictionary in place and return it.

## What this package does not do

It does not run as a CNI plugin, invoke delegate plugins, talk to the
Kubernetes API or change routes inside a network namespace. It only makes the
per-delegate decisions, keeps the delegate files and edits cached results; the
code that calls plugins and applies routes has to be supplied by the caller.