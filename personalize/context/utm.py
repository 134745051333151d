"""UTM extraction, referrer/device detection and intent inference.

Pure functions: given a page URL, a referrer URL and a user-agent string
they produce a ``VisitContext`` with a pre-computed primary intent.
"""

import re
from typing import Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .models import DeviceInfo, ReferrerInfo, VisitContext, now_ms

UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term")

REFERRER_PATTERNS: dict[str, re.Pattern[str]] = {
    "google": re.compile(r"google\.", re.I),
    "bing": re.compile(r"bing\.", re.I),
    "yahoo": re.compile(r"yahoo\.", re.I),
    "duckduckgo": re.compile(r"duckduckgo\.", re.I),
    "facebook": re.compile(r"facebook\.com|fb\.com", re.I),
    "twitter": re.compile(r"twitter\.com|t\.co|x\.com", re.I),
    "instagram": re.compile(r"instagram\.com", re.I),
    "linkedin": re.compile(r"linkedin\.com", re.I),
    "pinterest": re.compile(r"pinterest\.", re.I),
    "tiktok": re.compile(r"tiktok\.com", re.I),
    "youtube": re.compile(r"youtube\.com|youtu\.be", re.I),
    "reddit": re.compile(r"reddit\.com", re.I),
}

REFERRER_CATEGORIES: dict[str, tuple[str, ...]] = {
    "search": ("google", "bing", "yahoo", "duckduckgo"),
    "social": (
        "facebook",
        "twitter",
        "instagram",
        "linkedin",
        "pinterest",
        "tiktok",
        "youtube",
        "reddit",
    ),
}

_EMAIL_REFERRER = re.compile(r"mail\.|email\.|newsletter", re.I)
_MOBILE_UA = re.compile(r"Android|webOS|iPhone|iPod|BlackBerry|IEMobile|Opera Mini", re.I)
_TABLET_UA = re.compile(r"iPad|Android(?!.*Mobile)", re.I)

# Checked in order; first match wins.
CAMPAIGN_INTENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"sale|discount|offer|promo", re.I), "price-focused"),
    (re.compile(r"gaming|game|esport", re.I), "gaming"),
    (re.compile(r"work|office|professional|productivity", re.I), "professional"),
    (re.compile(r"creative|design|art|studio", re.I), "creative"),
    (re.compile(r"brand|story|about", re.I), "brand-story"),
]

SOURCE_INTENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"google|bing|yahoo", re.I), "search-optimized"),
    (re.compile(r"facebook|instagram|tiktok", re.I), "social-visual"),
    (re.compile(r"twitter|x$", re.I), "social-brief"),
    (re.compile(r"email|newsletter", re.I), "returning-user"),
    (re.compile(r"youtube", re.I), "video-engaged"),
]

REFERRER_INTENTS = {
    "search": "search-optimized",
    "social": "social-visual",
    "email": "returning-user",
}


def sanitize_param(value: str) -> str:
    """Strip tags and unsafe characters, cap at 100 chars."""
    if not isinstance(value, str):
        return ""
    value = re.sub(r"<[^>]*>", "", value)
    value = re.sub(r"[^\w\s\-.]", "", value)
    return value[:100].strip()


def extract_utm_params(url: Optional[str]) -> dict[str, str]:
    """Extract sanitized UTM parameters from a URL or bare query string."""
    if not url:
        return {}

    query = urlsplit(url).query if "?" in url or "://" in url else url.lstrip("?")
    params = parse_qs(query, keep_blank_values=False)

    result = {}
    for name in UTM_PARAMS:
        values = params.get(name)
        if not values:
            continue
        cleaned = sanitize_param(values[0])
        if cleaned:
            result[name] = cleaned
    return result


def detect_referrer(referrer_url: Optional[str]) -> ReferrerInfo:
    """Classify a referrer URL into source and category."""
    if not referrer_url:
        return ReferrerInfo()

    if _EMAIL_REFERRER.search(referrer_url):
        return ReferrerInfo(source="email", category="email", url=referrer_url)

    for source, pattern in REFERRER_PATTERNS.items():
        if pattern.search(referrer_url):
            category = "other"
            for name, members in REFERRER_CATEGORIES.items():
                if source in members:
                    category = name
                    break
            return ReferrerInfo(source=source, category=category, url=referrer_url)

    return ReferrerInfo(source="external", category="other", url=referrer_url)


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    """Derive the device class from a user-agent string."""
    if not user_agent:
        return DeviceInfo()

    is_mobile = bool(_MOBILE_UA.search(user_agent))
    is_tablet = bool(_TABLET_UA.search(user_agent))
    return DeviceInfo(
        raw=user_agent,
        is_mobile=is_mobile,
        is_tablet=is_tablet,
        is_desktop=not is_mobile and not is_tablet,
    )


def infer_intent(utm: Mapping[str, str], referrer: ReferrerInfo) -> str:
    """Infer the primary intent: campaign, then source, then referrer."""
    campaign = utm.get("utm_campaign")
    if campaign:
        for pattern, intent in CAMPAIGN_INTENTS:
            if pattern.search(campaign):
                return intent

    source = utm.get("utm_source")
    if source:
        for pattern, intent in SOURCE_INTENTS:
            if pattern.search(source):
                return intent

    return REFERRER_INTENTS.get(referrer.category, "default")


def build_context(
    url: Optional[str] = None,
    referrer: Optional[str] = None,
    user_agent: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> VisitContext:
    """Build a full ``VisitContext`` from raw request metadata."""
    utm = extract_utm_params(url)
    referrer_info = detect_referrer(referrer)
    return VisitContext(
        utm=utm,
        referrer=referrer_info,
        device=parse_user_agent(user_agent),
        timestamp=timestamp if timestamp is not None else now_ms(),
        has_utm=bool(utm),
        primary_intent=infer_intent(utm, referrer_info),
    )
