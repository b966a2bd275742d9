"""
SensorFilt Signal Conditioning Pipeline

This module provides Butterworth low-pass filtering of IMU vector streams
with smoothed derivative channels:
- synthesize: Butterworth IIR coefficient design (bilinear transform)
- DirectFormIIRFilter: Fixed-capacity per-channel recursive filter
- FilterBank: One filter per vector axis
- DerivedSignalStage: Filtered signal plus filtered finite-difference derivative
- ProcessingCycle: Pulls latest samples, filters them, emits a ResultRecord
- OnNewDataDriver / FixedPeriodDriver: When a cycle runs

Usage:
    from sensorfilt import FilteringConfig, VARIANTS, build_cycle, make_driver

    cycle = build_cycle(FilteringConfig.from_env(), VARIANTS["accel"], output=publish)
    driver = make_driver(VARIANTS["accel"], cycle)

    # On every raw sample:
    cycle.inputs["accel"].push((ax, ay, az))
    driver.on_sample("accel")
"""

from .errors import SensorFilterError, InvalidSpec, PreconditionViolation
from .butterworth import (
    MAX_ORDER,
    FilterSpec,
    FilterCoefficients,
    synthesize,
    synthesize_spec,
)
from .iir import DirectFormIIRFilter, FilterBank, PASSTHROUGH
from .derivative import DerivedSignalStage
from .config import FilteringConfig, RoleConfig, Variant, VARIANTS, get_variant
from .cycle import (
    ChannelInput,
    ProcessingCycle,
    ResultRecord,
    SampleRecord,
    build_cycle,
)
from .scheduling import FixedPeriodDriver, OnNewDataDriver, make_driver, sleep_duration

__all__ = [
    # Errors
    'SensorFilterError',
    'InvalidSpec',
    'PreconditionViolation',

    # Synthesis
    'MAX_ORDER',
    'FilterSpec',
    'FilterCoefficients',
    'synthesize',
    'synthesize_spec',

    # Filtering
    'DirectFormIIRFilter',
    'FilterBank',
    'PASSTHROUGH',
    'DerivedSignalStage',

    # Configuration
    'FilteringConfig',
    'RoleConfig',
    'Variant',
    'VARIANTS',
    'get_variant',

    # Cycle
    'ChannelInput',
    'ProcessingCycle',
    'ResultRecord',
    'SampleRecord',
    'build_cycle',

    # Scheduling
    'FixedPeriodDriver',
    'OnNewDataDriver',
    'make_driver',
    'sleep_duration',
]

__version__ = '1.0.0'
