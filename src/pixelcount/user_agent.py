"""
User-Agent parsing for browser and device detection.

This module extracts the browser family, a masked browser version, the
device model and the device category from User-Agent strings. User-Agents
are notoriously messy (Chrome claims to be Mozilla, Safari, and Chrome all
at once), so we use careful pattern matching.

Key Design Decisions:
- Check for newer/specific browsers first (Edge before Chrome)
- Anything we cannot recognise is stored as an empty string
- Parsing never raises; a garbled UA degrades to empty fields

Privacy Note:
Only the major browser version is kept (e.g. "51.x.x.x"). Minor and build
numbers add fingerprinting entropy without analytic value.
"""

import re
from dataclasses import dataclass
from enum import Enum


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    TV = "smarttv"
    CONSOLE = "console"


@dataclass(frozen=True)
class UserAgentInfo:
    """
    Parsed user-agent information.

    Attributes:
        browser: Browser family name (Chrome, Firefox, Safari, etc.)
        browser_version: Masked version ("120.x.x.x"), empty if unknown
        device_model: Hardware model when the UA exposes one (iPhone, SM-G991B)
        device_type: Device category value, empty for an empty UA
    """
    browser: str = ""
    browser_version: str = ""
    device_model: str = ""
    device_type: str = ""


# =============================================================================
# BROWSER DETECTION PATTERNS
# =============================================================================
# Order matters! Check specific browsers before generic ones.
# Each tuple: (pattern_with_version_group, browser_name)

BROWSER_PATTERNS = [
    # New Chromium-based browsers (check before Chrome)
    (r"Edg(?:e|A|iOS)?/([\d.]+)", "Edge"),
    (r"OPR/([\d.]+)", "Opera"),
    (r"Opera.*Version/([\d.]+)", "Opera"),
    (r"Vivaldi/([\d.]+)", "Vivaldi"),
    (r"Brave/([\d.]+)", "Brave"),

    # Samsung Internet
    (r"SamsungBrowser/([\d.]+)", "Samsung Internet"),

    # UC Browser
    (r"UCBrowser/([\d.]+)", "UCBrowser"),

    # Yandex Browser
    (r"YaBrowser/([\d.]+)", "Yandex"),

    # DuckDuckGo Browser
    (r"DuckDuckGo/([\d.]+)", "DuckDuckGo"),

    # Firefox variants
    (r"Firefox Focus/([\d.]+)", "Firefox Focus"),
    (r"FxiOS/([\d.]+)", "Mobile Firefox"),
    (r"Firefox/([\d.]+)", "Firefox"),

    # Chrome variants (after other Chromium browsers)
    (r"CriOS/([\d.]+)", "Mobile Chrome"),
    (r"Chrome/([\d.]+)", "Chrome"),
    (r"Chromium/([\d.]+)", "Chromium"),

    # Safari (must come after Chrome which also contains Safari)
    (r"Version/([\d.]+).*Mobile.*Safari", "Mobile Safari"),
    (r"Version/([\d.]+).*Safari", "Safari"),

    # IE and legacy
    (r"MSIE ([\d.]+)", "IE"),
    (r"Trident.*rv:([\d.]+)", "IE"),
]

# =============================================================================
# DEVICE DETECTION
# =============================================================================

DEVICE_MODEL_PATTERNS = [
    (r"\biPad\b", "iPad"),
    (r"\biPhone\b", "iPhone"),
    (r"\biPod\b", "iPod"),
    (r"\bXbox\b", "Xbox"),
    (r"\bPlayStation \d\b", None),
    (r"\bMacintosh\b", "Macintosh"),
]

# "Android 13; SM-S918B)" or "Android 4.4.2; en-us; SAMSUNG SM-G900F Build/KOT49H)"
ANDROID_MODEL = re.compile(r"Android [\d.]+; (?:[a-zA-Z]{2}[-_][a-zA-Z]{2}; )?([^;)]+?)(?: Build/[^;)]*)?\)")

MOBILE_INDICATORS = [
    r"Mobile",
    r"iPhone",
    r"iPod",
    r"BlackBerry",
    r"IEMobile",
    r"Opera Mini",
    r"Opera Mobi",
    r"Windows Phone",
]

TABLET_INDICATORS = [
    r"iPad",
    r"Android(?!.*Mobile)",  # Android without Mobile = tablet
    r"Tablet",
    r"Kindle",
    r"Silk",
    r"PlayBook",
]

TV_INDICATORS = [
    r"SmartTV",
    r"Smart-TV",
    r"Web0S",
    r"NetCast",
    r"Tizen.*TV",
    r"Roku",
    r"BRAVIA",
    r"AppleTV",
    r"FireTV",
    r"Chromecast",
]

CONSOLE_INDICATORS = [
    r"PlayStation",
    r"Xbox",
    r"Nintendo",
]


def mask_browser_version(version: str | None) -> str:
    """Keep only the major version: "51.0.2704.103" -> "51.x.x.x"."""
    if not version:
        return ""
    major, *rest = version.split(".")
    return ".".join([major] + ["x"] * len(rest))


def _matches_any(patterns: list[str], ua: str) -> bool:
    return any(re.search(pattern, ua, re.IGNORECASE) for pattern in patterns)


def _detect_device_type(ua: str) -> str:
    """Detect device type from user-agent string.

    A UA with no mobile, tablet, TV or console marker is treated as desktop.
    """
    if _matches_any(CONSOLE_INDICATORS, ua):
        return DeviceType.CONSOLE.value

    # Check TV first (some TVs include "Mobile" in their UA)
    if _matches_any(TV_INDICATORS, ua):
        return DeviceType.TV.value

    # Check tablet before mobile (iPad contains Mobile in some cases)
    if _matches_any(TABLET_INDICATORS, ua):
        return DeviceType.TABLET.value

    if _matches_any(MOBILE_INDICATORS, ua):
        return DeviceType.MOBILE.value

    return DeviceType.DESKTOP.value


def _detect_browser(ua: str) -> tuple[str, str]:
    """
    Detect browser and version from user-agent.

    Returns: (browser_name, masked_version)
    """
    for pattern, browser_name in BROWSER_PATTERNS:
        match = re.search(pattern, ua, re.IGNORECASE)
        if match:
            return (browser_name, mask_browser_version(match.group(1)))

    return ("", "")


def _detect_device_model(ua: str) -> str:
    for pattern, model in DEVICE_MODEL_PATTERNS:
        match = re.search(pattern, ua)
        if match:
            return model or match.group(0)

    match = ANDROID_MODEL.search(ua)
    if match:
        return match.group(1).strip()

    return ""


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Parse a user-agent string into structured information.

    Args:
        user_agent: The User-Agent header value

    Returns:
        UserAgentInfo with browser and device details

    Examples:
        >>> parse_user_agent("Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/51.0.2704.103 Safari/537.36")
        UserAgentInfo(browser='Chrome', browser_version='51.x.x.x', device_model='', device_type='desktop')
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    browser, browser_version = _detect_browser(user_agent)

    return UserAgentInfo(
        browser=browser,
        browser_version=browser_version,
        device_model=_detect_device_model(user_agent),
        device_type=_detect_device_type(user_agent),
    )
