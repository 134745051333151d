"""Visit context models produced once per page view."""

import time

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


def now_ms() -> int:
    """Current wall clock as epoch milliseconds."""
    return int(time.time() * 1000)


class ReferrerInfo(BaseModel):
    """Where the visitor came from."""

    model_config = _FROZEN

    source: str = "direct"
    category: str = "direct"  # search, social, email, direct, other
    url: str = ""


class DeviceInfo(BaseModel):
    """Device class derived from the user agent."""

    model_config = _FROZEN

    raw: str = ""
    is_mobile: bool = False
    is_tablet: bool = False
    is_desktop: bool = True

    @property
    def device_class(self) -> str:
        if self.is_mobile:
            return "mobile"
        if self.is_tablet:
            return "tablet"
        return "desktop"


class VisitContext(BaseModel):
    """Immutable traffic metadata for a single page view."""

    model_config = _FROZEN

    utm: dict[str, str] = Field(default_factory=dict)
    referrer: ReferrerInfo = Field(default_factory=ReferrerInfo)
    device: DeviceInfo = Field(
        default_factory=DeviceInfo,
        validation_alias=AliasChoices("device", "userAgent", "user_agent"),
    )
    timestamp: int = Field(default_factory=now_ms)
    has_utm: bool = False
    primary_intent: str = "default"
