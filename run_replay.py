"""
Replay a recorded IMU CSV through the SensorFilt pipeline.

Every row is treated as one fresh sample per active channel and produces one
cycle, exactly as the edge-triggered host would run it.

Usage:
    python run_replay.py --input imu.csv --output imu_filtered.csv
    python run_replay.py --input imu.csv --output out.csv --variant gyro

Input columns (any of the listed aliases):
    t / timestamp (optional), ax ay az (m/s^2), gx gy gz (rad/s)
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from sensorfilt import FilteringConfig, InvalidSpec, ResultRecord, build_cycle, get_variant

# =============================================================================
# Column Names
# =============================================================================

TIME_NAMES = ['t', 'time', 'timestamp', 'Time']
ACCEL_X_NAMES = ['ax', 'accel_x', 'acc_x', 'Accel_X']
ACCEL_Y_NAMES = ['ay', 'accel_y', 'acc_y', 'Accel_Y']
ACCEL_Z_NAMES = ['az', 'accel_z', 'acc_z', 'Accel_Z']
GYRO_X_NAMES = ['gx', 'gyro_x', 'Gyro_X']
GYRO_Y_NAMES = ['gy', 'gyro_y', 'Gyro_Y']
GYRO_Z_NAMES = ['gz', 'gyro_z', 'Gyro_Z']

CHANNEL_COLUMNS = {
    'accel': (ACCEL_X_NAMES, ACCEL_Y_NAMES, ACCEL_Z_NAMES),
    'gyro': (GYRO_X_NAMES, GYRO_Y_NAMES, GYRO_Z_NAMES),
}

OUTPUT_FIELDS = ['accel_mps2', 'jerk_mps3', 'angrate_radps', 'angacc_radps2']


def find_column(df, possible_names):
    """Find a column by checking multiple possible names."""
    for name in possible_names:
        if name in df.columns:
            return name
    return None


# =============================================================================
# Helper Functions
# =============================================================================

def load_channels(df: pd.DataFrame, channels) -> dict:
    """
    Extract one (n, 3) array per channel.

    Missing readings stay NaN; ChannelInput rejects them, so that row is
    filtered against the previous sample.

    Raises:
        KeyError: a required column is missing
    """
    data = {}
    for channel in channels:
        cols = [find_column(df, names) for names in CHANNEL_COLUMNS[channel]]
        if None in cols:
            raise KeyError(f"Missing {channel} columns (available: {list(df.columns)})")
        data[channel] = df[cols].values.astype(np.float64)
    return data


def record_to_row(record: ResultRecord) -> list:
    row = [record.timestamp]
    for name in OUTPUT_FIELDS:
        value = getattr(record, name)
        if value is not None:
            row.extend(value)
    return row


def output_columns(channels) -> list:
    cols = ['t']
    active = []
    if 'accel' in channels:
        active += ['accel_mps2', 'jerk_mps3']
    if 'gyro' in channels:
        active += ['angrate_radps', 'angacc_radps2']
    for name in OUTPUT_FIELDS:
        if name in active:
            cols += [f"{name}_{axis}" for axis in 'xyz']
    return cols


def replay(df: pd.DataFrame, variant_name: str = 'accel', config: FilteringConfig = None) -> pd.DataFrame:
    """
    Run every row of df through a fresh ProcessingCycle.

    Returns:
        DataFrame with one row per cycle
    """
    variant = get_variant(variant_name)
    config = config or FilteringConfig()
    data = load_channels(df, variant.channels)
    n = len(df)

    time_col = find_column(df, TIME_NAMES)
    if time_col is not None:
        times = df[time_col].values.astype(np.float64)
    else:
        times = np.arange(n, dtype=np.float64) * variant.step_interval_s

    clock_state = {'t': 0.0}
    cycle = build_cycle(config, variant, clock=lambda: clock_state['t'])

    rows = []
    for i in range(n):
        clock_state['t'] = float(times[i])
        for channel in variant.channels:
            cycle.inputs[channel].push(data[channel][i], timestamp=times[i])
        rows.append(record_to_row(cycle.run_once()))

    return pd.DataFrame(rows, columns=output_columns(variant.channels))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Replay an IMU CSV through the Butterworth filter pipeline')
    parser.add_argument('--input', required=True, type=Path, help='Input CSV with raw IMU samples')
    parser.add_argument('--output', required=True, type=Path, help='Output CSV for filtered data')
    parser.add_argument('--variant', default='accel', choices=['accel', 'gyro', 'combined'])
    parser.add_argument('--from-env', action='store_true',
                        help='Read filter orders/cutoffs from SFILT_* environment variables')
    args = parser.parse_args(argv)

    try:
        config = FilteringConfig.from_env() if args.from_env else FilteringConfig()
        df = pd.read_csv(args.input)
        out = replay(df, args.variant, config)
    except InvalidSpec as e:
        print(f"[Replay] Invalid configuration: {e}")
        return 2
    except KeyError as e:
        print(f"[Replay] {e.args[0]}")
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    out.to_csv(args.output, index=False)
    print(f"[Replay] {len(out)} cycles ({args.variant}) -> {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
