"""Per-feature settings stored under ``features`` in twa-manifest.json."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _FeatureConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    enabled: bool = False


class AppsFlyerConfig(_FeatureConfig):
    apps_flyer_id: str = Field(default="", alias="appsFlyerId")


class LocationDelegationConfig(_FeatureConfig):
    pass


class PlayBillingConfig(_FeatureConfig):
    pass


class FirstRunFlagConfig(_FeatureConfig):
    query_parameter_name: str = Field(default="", alias="queryParameterName")


class Features(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    apps_flyer: AppsFlyerConfig | None = Field(default=None, alias="appsFlyer")
    location_delegation: LocationDelegationConfig | None = Field(
        default=None, alias="locationDelegation"
    )
    play_billing: PlayBillingConfig | None = Field(default=None, alias="playBilling")
    first_run_flag: FirstRunFlagConfig | None = Field(default=None, alias="firstRunFlag")


__all__ = [
    "AppsFlyerConfig",
    "Features",
    "FirstRunFlagConfig",
    "LocationDelegationConfig",
    "PlayBillingConfig",
]
