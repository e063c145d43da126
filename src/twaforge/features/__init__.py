"""Optional features folded into the generated Android project."""

from twaforge.features.base import Contribution, Feature, Metadata
from twaforge.features.config import (
    AppsFlyerConfig,
    Features,
    FirstRunFlagConfig,
    LocationDelegationConfig,
    PlayBillingConfig,
)
from twaforge.features.manager import FeatureManager

__all__ = [
    "AppsFlyerConfig",
    "Contribution",
    "Feature",
    "FeatureManager",
    "Features",
    "FirstRunFlagConfig",
    "LocationDelegationConfig",
    "Metadata",
    "PlayBillingConfig",
]
