"""Tests for the networksetup-backed proxy controller."""

from __future__ import annotations

from spoofctl.proxy.controller import ProxySettingController

LISTING = """An asterisk (*) denotes that a network service is disabled.
Wi-Fi
Thunderbolt Bridge
*USB 10/100/1000 LAN

"""

WEB_ON = "Enabled: Yes\nServer: 127.0.0.1\nPort: 53210\nAuthenticated Proxy Enabled: 0\n"
WEB_OFF = "Enabled: No\nServer: \nPort: 0\nAuthenticated Proxy Enabled: 0\n"


def test_list_services_skips_header_and_strips_marker(runner):
    runner.on("networksetup", "-listallnetworkservices", stdout=LISTING)
    proxy = ProxySettingController(runner)

    assert proxy.list_services() == ["Wi-Fi", "Thunderbolt Bridge", "USB 10/100/1000 LAN"]


def test_enable_sets_targets_before_states(runner):
    proxy = ProxySettingController(runner)

    assert proxy.enable("Wi-Fi", "127.0.0.1", 53210).ok
    assert [c[1] for c in runner.calls] == [
        "-setwebproxy",
        "-setsecurewebproxy",
        "-setwebproxystate",
        "-setsecurewebproxystate",
    ]
    assert runner.calls[0] == ["networksetup", "-setwebproxy", "Wi-Fi", "127.0.0.1", "53210", "off"]
    assert runner.calls[2] == ["networksetup", "-setwebproxystate", "Wi-Fi", "on"]


def test_enable_stops_before_switching_on_with_bad_target(runner):
    runner.on("networksetup", "-setsecurewebproxy", returncode=4, stdout="** Error: invalid")
    proxy = ProxySettingController(runner)

    outcome = proxy.enable("Wi-Fi", "127.0.0.1", 53210)
    assert not outcome.ok
    assert runner.called("networksetup", "-setwebproxystate") == []


def test_enable_detects_error_reported_on_stdout(runner):
    runner.on("networksetup", "-setwebproxy", stdout="Ghost is not a recognized network service.")
    proxy = ProxySettingController(runner)

    assert not proxy.enable("Ghost", "127.0.0.1", 53210).ok


def test_disable_attempts_both_states(runner):
    runner.on("networksetup", "-setwebproxystate", returncode=1, stderr="failed")
    proxy = ProxySettingController(runner)

    outcome = proxy.disable("Wi-Fi")
    assert not outcome.ok
    assert len(runner.called("networksetup", "-setsecurewebproxystate")) == 1


def test_get_state_parses_output(runner):
    runner.on("networksetup", "-getwebproxy", stdout=WEB_ON)
    runner.on("networksetup", "-getsecurewebproxy", stdout=WEB_OFF)
    proxy = ProxySettingController(runner)

    state = proxy.get_state("Wi-Fi")
    assert state is not None
    assert state.web_enabled is True
    assert state.secure_enabled is False
    assert state.server == "127.0.0.1"
    assert state.port == 53210
    assert state.any_enabled and not state.enabled


def test_enable_all_aggregates_partial_failure(runner):
    runner.on("networksetup", "-listallnetworkservices", stdout=LISTING)
    runner.on("networksetup", "-setwebproxy", "Thunderbolt Bridge", returncode=4, stderr="** Error")
    proxy = ProxySettingController(runner)

    batch = proxy.enable_all("127.0.0.1", 53210)
    assert batch.succeeded == ["Wi-Fi", "USB 10/100/1000 LAN"]
    assert list(batch.failed) == ["Thunderbolt Bridge"]
    assert batch.attempted == 3


def test_disable_all_skips_services_already_off(runner):
    runner.on("networksetup", "-listallnetworkservices", stdout="An asterisk (*) denotes...\nWi-Fi\n")
    runner.on("networksetup", "-getwebproxy", stdout=WEB_OFF)
    runner.on("networksetup", "-getsecurewebproxy", stdout=WEB_OFF)
    proxy = ProxySettingController(runner)

    batch = proxy.disable_all()
    assert batch.skipped == ["Wi-Fi"]
    assert batch.succeeded == []
    assert runner.called("networksetup", "-setwebproxystate") == []


def test_listing_failure_is_reported_not_raised(runner):
    runner.on("networksetup", "-listallnetworkservices", returncode=127, stderr="not found")
    proxy = ProxySettingController(runner)

    batch = proxy.enable_all("127.0.0.1", 53210)
    assert batch.listing_error
    assert batch.attempted == 0
