"""Tests for user-agent parsing and beacon UTM extraction."""

import pytest

from pixelcount.core.models import BeaconRequest
from pixelcount.user_agent import DeviceType, mask_browser_version, parse_user_agent
from pixelcount.utm import MAX_UTM_LENGTH, UTMParams, utm_from_beacon


class TestUTMFromBeacon:
    """Test UTM extraction from the short beacon parameters."""

    def test_basic_utm_params(self):
        params = utm_from_beacon({"us": "google", "um": "cpc", "uc": "spring_sale"})
        assert params.source == "google"
        assert params.medium == "cpc"
        assert params.campaign == "spring_sale"

    def test_all_utm_params(self):
        params = utm_from_beacon({
            "us": "newsletter",
            "um": "email",
            "uc": "launch",
            "ut": "keyword",
            "uco": "variant_a",
        })
        assert params.source == "newsletter"
        assert params.medium == "email"
        assert params.campaign == "launch"
        assert params.term == "keyword"
        assert params.content == "variant_a"

    def test_no_utm_params(self):
        params = utm_from_beacon({"sid": "example", "p": "/"})
        assert params == UTMParams()

    def test_whitespace_only_is_absent(self):
        assert utm_from_beacon({"us": "   "}).source is None

    def test_long_values_truncated(self):
        params = utm_from_beacon({"uc": "x" * 500})
        assert params.campaign == "x" * MAX_UTM_LENGTH

    def test_beacon_request_carries_utm(self):
        beacon = BeaconRequest.from_query({"sid": "example", "us": " google ", "uco": ""})
        assert beacon.utm_source == "google"
        assert beacon.utm_content is None


class TestUserAgentParsing:
    """Test browser and device detection from user-agents."""

    def test_chrome_linux(self):
        ua = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/51.0.2704.103 Safari/537.36"
        info = parse_user_agent(ua)
        assert info.browser == "Chrome"
        assert info.browser_version == "51.x.x.x"
        assert info.device_model == ""
        assert info.device_type == DeviceType.DESKTOP.value

    def test_chrome_macos(self):
        ua = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        info = parse_user_agent(ua)
        assert info.browser == "Chrome"
        assert info.browser_version == "120.x.x.x"
        assert info.device_model == "Macintosh"
        assert info.device_type == "desktop"

    def test_safari_ios(self):
        ua = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
        info = parse_user_agent(ua)
        assert info.browser == "Mobile Safari"
        assert info.browser_version == "17.x"
        assert info.device_model == "iPhone"
        assert info.device_type == "mobile"

    def test_firefox_windows(self):
        ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
        info = parse_user_agent(ua)
        assert info.browser == "Firefox"
        assert info.browser_version == "121.x"
        assert info.device_type == "desktop"

    def test_edge_windows(self):
        ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36 Edg/119.0.0.0"
        info = parse_user_agent(ua)
        assert info.browser == "Edge"
        assert info.browser_version == "119.x.x.x"

    def test_android_chrome(self):
        ua = "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36"
        info = parse_user_agent(ua)
        assert info.browser == "Chrome"
        assert info.device_model == "Pixel 7"
        assert info.device_type == "mobile"

    def test_android_tablet_with_locale(self):
        ua = (
            "Mozilla/5.0 (Linux; Android 4.4.2; en-us; SAMSUNG SM-T530NU Build/KOT49H) "
            "AppleWebKit/537.36 (KHTML, like Gecko) SamsungBrowser/1.0 Chrome/28.0.1500.94 Safari/537.36"
        )
        info = parse_user_agent(ua)
        assert info.browser == "Samsung Internet"
        assert info.device_model == "SAMSUNG SM-T530NU"
        assert info.device_type == "tablet"

    def test_ipad_safari(self):
        ua = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
        info = parse_user_agent(ua)
        assert info.device_model == "iPad"
        assert info.device_type == "tablet"

    def test_xbox(self):
        ua = (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; Xbox; Xbox One) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/70.0.3538.102 Safari/537.36 Edge/18.19041"
        )
        info = parse_user_agent(ua)
        assert info.browser == "Edge"
        assert info.device_model == "Xbox"
        assert info.device_type == "console"

    def test_empty_ua(self):
        info = parse_user_agent("")
        assert info.browser == ""
        assert info.browser_version == ""
        assert info.device_model == ""
        assert info.device_type == ""

    def test_unrecognised_ua(self):
        info = parse_user_agent("curl/8.4.0")
        assert info.browser == ""
        assert info.device_type == "desktop"


class TestMaskBrowserVersion:
    @pytest.mark.parametrize("version,expected", [
        ("51.0.2704.103", "51.x.x.x"),
        ("17.0", "17.x"),
        ("9", "9"),
        ("", ""),
        (None, ""),
    ])
    def test_mask(self, version, expected):
        assert mask_browser_version(version) == expected
