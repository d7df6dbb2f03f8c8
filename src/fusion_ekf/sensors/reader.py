"""
Reading recorded measurement files and writing estimation results.

Input format, one whitespace-separated record per line:

    L  px   py           timestamp  gt_px gt_py gt_vx gt_vy
    R  rho  phi  rho_dot timestamp  gt_px gt_py gt_vx gt_vy
    R  rho  phi          timestamp  gt_px gt_py gt_vx gt_vy

Ground-truth columns are optional. Blank lines and lines starting with '#'
are ignored.

Output format, tab-separated, one line per estimate:

    est_px est_py est_vx est_vy meas_px meas_py gt_px gt_py gt_vx gt_vy
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .measurement import GroundTruthPackage, MeasurementPackage, SensorType
from ..exceptions import MeasurementFormatError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Record = Tuple[MeasurementPackage, Optional[GroundTruthPackage]]

# Accepted numbers of raw values preceding the timestamp
_RAW_SIZES = {
    SensorType.LASER: (2,),
    SensorType.RADAR: (3, 2),
}

OUTPUT_COLUMNS = (
    'est_px', 'est_py', 'est_vx', 'est_vy',
    'meas_px', 'meas_py',
    'gt_px', 'gt_py', 'gt_vx', 'gt_vy',
)


def _raw_size(sensor_type: SensorType, field_count: int) -> Optional[int]:
    """Number of raw values implied by the field count, with or without ground truth."""
    for raw_size in _RAW_SIZES[sensor_type]:
        if field_count in (raw_size + 1, raw_size + 5):
            return raw_size
    return None


def parse_line(line: str, line_number: int = 0) -> Record:
    """
    Parse a single measurement record.

    Args:
        line: Text of the record
        line_number: Line number for error messages

    Returns:
        Tuple of (measurement, ground truth or None)

    Raises:
        MeasurementFormatError: If the record is malformed
    """
    tokens = line.split()
    if not tokens:
        raise MeasurementFormatError("empty record", line_number)

    try:
        sensor_type = SensorType(tokens[0])
    except ValueError:
        raise MeasurementFormatError(f"unknown sensor tag {tokens[0]!r}", line_number) from None

    values = tokens[1:]
    raw_size = _raw_size(sensor_type, len(values))
    if raw_size is None:
        sizes = ' or '.join(map(str, _RAW_SIZES[sensor_type]))
        raise MeasurementFormatError(
            f"{sensor_type.name} record needs {sizes} values and a timestamp "
            f"(optionally followed by 4 ground truth values), got {len(values)} fields",
            line_number,
        )

    try:
        raw = [float(v) for v in values[:raw_size]]
        timestamp = int(values[raw_size])
        truth = [float(v) for v in values[raw_size + 1:]]
    except ValueError as err:
        raise MeasurementFormatError(str(err), line_number) from err

    try:
        measurement = MeasurementPackage(sensor_type, timestamp, np.array(raw))
    except ValueError as err:
        raise MeasurementFormatError(str(err), line_number) from err

    ground_truth = GroundTruthPackage(timestamp, np.array(truth)) if truth else None
    return measurement, ground_truth


def iter_measurements(path: PathLike) -> Iterator[Record]:
    """
    Lazily yield records from a measurement file.

    Raises:
        FileNotFoundError: If the file does not exist
        MeasurementFormatError: On the first malformed record
    """
    with open(path, 'r', encoding='utf-8') as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue
            yield parse_line(stripped, line_number)


def read_measurements(path: PathLike) -> List[Record]:
    """Read every record of a measurement file."""
    records = list(iter_measurements(path))
    logger.info(f"Read {len(records)} measurements from {path}")
    return records


def format_row(estimate: np.ndarray, measurement: MeasurementPackage,
               ground_truth: Optional[GroundTruthPackage]) -> np.ndarray:
    """Assemble one output row; missing ground truth is written as NaN."""
    truth = ground_truth.values if ground_truth is not None else np.full(4, np.nan)
    return np.concatenate([
        np.asarray(estimate, dtype=float)[:4],
        np.array(measurement.to_cartesian()),
        truth,
    ])


def write_estimations(path: PathLike, rows: Sequence[np.ndarray]) -> None:
    """
    Write estimation rows as tab-separated text.

    Args:
        path: Output file
        rows: Sequence of 10-element rows built by format_row()
    """
    table = np.asarray(rows, dtype=float).reshape(-1, len(OUTPUT_COLUMNS))
    np.savetxt(path, table, fmt='%.6f', delimiter='\t')
    logger.info(f"Wrote {len(table)} estimates to {path}")
