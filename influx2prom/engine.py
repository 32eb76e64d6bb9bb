"""Conversion engine: decode, flatten and encode a line protocol batch."""
import time
import logging
from typing import Iterable, List, Optional, Union

from influx2prom.config import Config
from influx2prom.flatten import flatten_points
from influx2prom.line_protocol import Point, parse_points
from influx2prom.prom_exporter import MetricEncoder
from influx2prom.series import ConversionStats

logger = logging.getLogger(__name__)


class ConversionEngine:
    """Runs one batch through the decode -> flatten -> encode pipeline."""

    def __init__(self, config: Config, encoder: MetricEncoder, log: Optional[logging.Logger] = None):
        self.config = config
        self.encoder = encoder
        self.logger = log or logger

    def decode(self, buf: Union[bytes, str], now_ns: Optional[int] = None) -> List[Point]:
        """Decode the whole buffer. Raises LineProtocolError."""
        if now_ns is None:
            now_ns = time.time_ns()

        precision = self.config.converter.precision
        points = parse_points(buf, now_ns, precision)
        self.logger.debug(f"Decoded {len(points)} points at precision '{precision}'")
        return points

    def emit(self, points: Iterable[Point]) -> ConversionStats:
        """Flatten points in order and encode every sample as it is produced."""
        stats = ConversionStats()
        for sample in flatten_points(points, self.logger, stats):
            self.encoder.encode(sample)
            stats.samples += 1

        self.encoder.finish()

        self.logger.info(
            f"Converted {stats.points} points into {stats.samples} samples "
            f"({stats.skipped_points} points skipped, {stats.skipped_fields} non-numeric fields)"
        )
        return stats

    def run(self, buf: Union[bytes, str], now_ns: Optional[int] = None) -> ConversionStats:
        """
        Convert a whole buffer.

        Decode and encode errors propagate. A point whose fields cannot be
        read is logged and skipped.

        Args:
            buf: Line protocol input
            now_ns: Default timestamp for points without one, defaults to
                the current UTC wall clock

        Returns:
            Counters for the run
        """
        points = self.decode(buf, now_ns)
        return self.emit(points)
