import json

import pytest

from multusnet.delegate import (
    Delegate,
    GatewayPlan,
    interface_name,
    plan_gateways,
    request_args,
    version_string,
)


def test_version_string_defaults():
    assert version_string() == (
        "version:master@git(), commit:unknown commit, date:unknown date"
    )


def test_interface_name_prefers_request():
    delegate = Delegate(ifname_request="eth7", master_plugin=True)
    assert interface_name(delegate, "eth0", 3) == "eth7"


def test_interface_name_master_uses_default():
    assert interface_name(Delegate(master_plugin=True), "eth0", 0) == "eth0"


@pytest.mark.parametrize("index", [0, 1, 5])
def test_interface_name_from_position(index):
    assert interface_name(Delegate(), "eth0", index) == f"net{index}"


def test_request_args_empty_without_requests():
    assert request_args(Delegate()) == []


@pytest.mark.parametrize(
    "mac",
    ["02:00:00:00:00:01", "02-00-00-00-00-01", "0200.0000.0001", "02:00:00:00:00:00:00:01"],
)
def test_request_args_mac_forms(mac):
    assert request_args(Delegate(mac_request=mac)) == [("MAC", mac)]


@pytest.mark.parametrize("mac", ["02:00:00:00:00", "02:00-00:00:00:01", "zz:00:00:00:00:01", "nothing"])
def test_request_args_bad_mac(mac):
    with pytest.raises(ValueError, match="failed to parse mac address"):
        request_args(Delegate(mac_request=mac))


def test_request_args_ips_joined():
    delegate = Delegate(ip_request=["10.1.1.103/24", "10::1:1:103"])
    assert request_args(delegate) == [("IP", "10.1.1.103/24,10::1:1:103")]


def test_request_args_mac_before_ip():
    delegate = Delegate(mac_request="02:00:00:00:00:01", ip_request=["10.1.1.103"])
    assert [key for key, _ in request_args(delegate)] == ["MAC", "IP"]


@pytest.mark.parametrize("ip", ["10.1.1.300", "10.1.1.1/33", "10.1.1.1/255.255.255.0", "fe80::1%eth0", "x"])
def test_request_args_bad_ip(ip):
    with pytest.raises(ValueError, match="failed to parse IP address"):
        request_args(Delegate(ip_request=[ip]))


def test_plan_gateways_nothing_requested():
    assert plan_gateways(Delegate()) == GatewayPlan()


def test_plan_gateways_filters_only():
    plan = plan_gateways(Delegate(filter_v4_gateway=True))
    assert (plan.delete_v4, plan.delete_v6, plan.add_default) == (True, False, False)
    assert plan.deletes


def test_plan_gateways_override():
    plan = plan_gateways(Delegate(gateway_request=["10.1.1.1"]))
    assert plan.delete_v4 and plan.delete_v6 and plan.add_default
    assert plan.gateways == ("10.1.1.1",)


def test_plan_gateways_empty_override_is_ignored():
    plan = plan_gateways(Delegate(gateway_request=[]))
    assert not plan.deletes
    assert not plan.add_default


def test_plan_gateways_filter_v6_with_override():
    plan = plan_gateways(Delegate(filter_v6_gateway=True, gateway_request=["10.1.1.1"]))
    assert plan.delete_v4 and plan.delete_v6 and plan.add_default


def test_plan_gateways_both_filters_skip_add():
    plan = plan_gateways(
        Delegate(filter_v4_gateway=True, filter_v6_gateway=True, gateway_request=["10.1.1.1"])
    )
    assert plan.deletes
    assert not plan.add_default
    assert plan.gateways == ()


def test_round_trip_through_json():
    delegate = Delegate(
        conf={"name": "weave1", "type": "weave-net", "cniVersion": "0.3.1"},
        raw=b'{"name":"weave1","type":"weave-net"}',
        name="weave1",
        ifname_request="eth9",
        mac_request="02:00:00:00:00:01",
        ip_request=["10.1.1.103/24"],
        gateway_request=["10.1.1.1"],
        master_plugin=True,
        filter_v4_gateway=True,
        resource_name="example.com/res",
        device_id="dev0",
    )
    text = json.dumps(delegate.to_dict())
    assert Delegate.from_dict(json.loads(text)) == delegate


def test_from_dict_marks_conflist_with_plugins():
    data = Delegate(conf_list={"name": "list", "plugins": [{"type": "bridge"}]}).to_dict()
    restored = Delegate.from_dict(data)
    assert restored.conflist_plugin
    assert restored.conf_name == "list"
    assert restored.net_name == "list"


def test_from_dict_rejects_non_mapping():
    with pytest.raises(ValueError):
        Delegate.from_dict(["not", "a", "dict"])


def test_names_prefer_single_conf():
    delegate = Delegate(conf={"name": "single", "type": "bridge"}, conf_list={"name": "list"})
    assert delegate.net_name == "single"
    assert delegate.conf_name == "single"
    assert delegate.plugin_type == "bridge"