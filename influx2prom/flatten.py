"""Expansion of decoded points into per-field samples."""
import logging
from typing import Dict, Iterable, Iterator, Optional

from influx2prom.line_protocol import FieldParseError, FieldValue, Point
from influx2prom.sanitize import sanitize_name
from influx2prom.series import ConversionStats, InfluxSample

logger = logging.getLogger(__name__)

RESERVED_NAME_LABEL = "__name__"


def metric_name(measurement: str, field: str) -> str:
    """Sanitized metric name for one field of a measurement."""
    if field == "value":
        return sanitize_name(measurement)
    return sanitize_name(f"{measurement}_{field}")


def point_labels(point: Point) -> Dict[str, str]:
    """Label set for a point: sanitized tag keys, raw tag values."""
    labels = {}
    for key, value in point.tags:
        name = sanitize_name(key)
        if RESERVED_NAME_LABEL in (key, name):
            continue
        labels[name] = value
    return labels


def _iter_samples(
    point: Point,
    fields: Dict[str, FieldValue],
    stats: Optional[ConversionStats] = None,
) -> Iterator[InfluxSample]:
    labels = point_labels(point)

    for field, field_value in fields.items():
        value = field_value.as_float()
        if value is None:
            if stats is not None:
                stats.skipped_fields += 1
            continue

        yield InfluxSample(
            name=metric_name(point.measurement, field),
            labels=dict(labels),
            value=value,
            timestamp=point.time,
        )


def flatten_point(point: Point, stats: Optional[ConversionStats] = None) -> Iterator[InfluxSample]:
    """
    Samples for each numeric field of a point.

    Fields without a numeric form (strings, unsigned integers) are skipped.
    The fields are read before this returns, so a broken point fails here
    rather than halfway through iteration.

    Raises:
        FieldParseError: if the point's fields cannot be read
    """
    fields = point.fields()
    return _iter_samples(point, fields, stats)


def flatten_points(
    points: Iterable[Point],
    log: Optional[logging.Logger] = None,
    stats: Optional[ConversionStats] = None,
) -> Iterator[InfluxSample]:
    """Flatten points in order, skipping those whose fields cannot be read."""
    log = log or logger

    for point in points:
        try:
            samples = flatten_point(point, stats)
        except FieldParseError as e:
            log.error(f"Error getting fields from point '{point.measurement}': {e}")
            if stats is not None:
                stats.skipped_points += 1
            continue

        if stats is not None:
            stats.points += 1
        yield from samples
