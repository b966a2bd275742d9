"""Configuration dataclasses for the sensor filtering pipeline."""
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .butterworth import FilterSpec, MAX_ORDER
from .errors import InvalidSpec

ORDER_MIN = 1
ORDER_MAX = MAX_ORDER
CUTOFF_MIN_RADPS = 1.0
CUTOFF_MAX_RADPS = 400.0

DRIVER_ON_NEW_DATA = "on_new_data"
DRIVER_FIXED_PERIOD = "fixed_period"

# channel -> (primary role, derived role)
CHANNEL_ROLES = {
    "accel": ("accel", "jerk"),
    "gyro": ("gyro", "angacc"),
}

# role -> environment variable prefix (SFILT_<PREFIX>_N / SFILT_<PREFIX>_FREQ)
ROLE_PARAMS = {
    "accel": "ACCEL",
    "jerk": "JRK",
    "gyro": "GYRO",
    "angacc": "AACC",
}


@dataclass
class RoleConfig:
    order: int = 2
    cutoff_radps: float = 70.0

    def spec(self, sample_rate_hz: float) -> FilterSpec:
        return FilterSpec(order=self.order, cutoff_radps=self.cutoff_radps, sample_rate_hz=sample_rate_hz)


@dataclass(frozen=True)
class Variant:
    name: str
    channels: Tuple[str, ...]
    sample_rate_hz: float
    driver: str

    @property
    def step_interval_s(self) -> float:
        return 1.0 / self.sample_rate_hz

    @property
    def primary_channel(self) -> str:
        return self.channels[0]


VARIANTS: Dict[str, Variant] = {
    "accel": Variant("accel", ("accel",), 400.0, DRIVER_ON_NEW_DATA),
    "gyro": Variant("gyro", ("gyro",), 400.0, DRIVER_ON_NEW_DATA),
    "combined": Variant("combined", ("accel", "gyro"), 800.0, DRIVER_FIXED_PERIOD),
}


@dataclass
class FilteringConfig:
    accel: RoleConfig = field(default_factory=lambda: RoleConfig(2, 70.0))
    jerk: RoleConfig = field(default_factory=lambda: RoleConfig(2, 70.0))
    gyro: RoleConfig = field(default_factory=lambda: RoleConfig(2, 50.0))
    angacc: RoleConfig = field(default_factory=lambda: RoleConfig(2, 50.0))

    def role(self, name: str) -> RoleConfig:
        if name not in ROLE_PARAMS:
            raise KeyError(name)
        return getattr(self, name)

    def validate(self) -> None:
        """Check every role against the supported parameter ranges."""
        for name in ROLE_PARAMS:
            rc = self.role(name)
            if not ORDER_MIN <= rc.order <= ORDER_MAX:
                raise InvalidSpec(f"{name}: order {rc.order} outside {ORDER_MIN}..{ORDER_MAX}")
            if not CUTOFF_MIN_RADPS <= rc.cutoff_radps <= CUTOFF_MAX_RADPS:
                raise InvalidSpec(
                    f"{name}: cutoff {rc.cutoff_radps} rad/s outside {CUTOFF_MIN_RADPS}..{CUTOFF_MAX_RADPS}"
                )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FilteringConfig":
        """
        Build a config from SFILT_* variables.

        Reads SFILT_<ROLE>_N and SFILT_<ROLE>_FREQ for ACCEL, JRK, GYRO and
        AACC. Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        cfg = cls()
        for name, prefix in ROLE_PARAMS.items():
            rc = cfg.role(name)
            order_raw = env.get(f"SFILT_{prefix}_N", "").strip()
            freq_raw = env.get(f"SFILT_{prefix}_FREQ", "").strip()
            try:
                if order_raw:
                    rc.order = int(order_raw)
                if freq_raw:
                    rc.cutoff_radps = float(freq_raw)
            except ValueError as e:
                raise InvalidSpec(f"SFILT_{prefix}: {e}") from e
        cfg.validate()
        return cfg


def get_variant(name: str) -> Variant:
    try:
        return VARIANTS[name]
    except KeyError:
        raise InvalidSpec(f"Unknown variant {name!r} (expected one of {', '.join(VARIANTS)})") from None
