"""Prometheus exposition encoder using prometheus_client."""
import logging
from typing import BinaryIO, Iterator, Union

from prometheus_client.exposition import generate_latest as generate_text
from prometheus_client.metrics_core import Metric, UnknownMetricFamily
from prometheus_client.openmetrics.exposition import generate_latest as generate_openmetrics
from prometheus_client.samples import Timestamp

from influx2prom.series import InfluxSample

logger = logging.getLogger(__name__)

HELP_TEXT = "InfluxDB Metric"
OPENMETRICS_EOF = b"# EOF\n"

FORMATS = {
    "text": generate_text,
    "openmetrics": generate_openmetrics,
}


class MetricEncodeError(RuntimeError):
    """Raised when a sample cannot be serialized."""


def to_timestamp(timestamp_ns: int) -> Union[Timestamp, float]:
    """Convert nanoseconds since the epoch to a prometheus_client Timestamp."""
    if timestamp_ns < 0:
        # Timestamp has no way to express a negative sub-second offset
        return timestamp_ns / 1e9
    sec, nsec = divmod(timestamp_ns, 1_000_000_000)
    return Timestamp(sec, nsec)


def sample_to_family(sample: InfluxSample) -> Metric:
    """Wrap one sample into its own untyped metric family."""
    # Label order follows label name, as Prometheus const metrics do
    label_names = sorted(sample.labels)
    family = UnknownMetricFamily(sample.name, HELP_TEXT, labels=label_names)
    family.add_metric(
        [sample.labels[name] for name in label_names],
        sample.value,
        timestamp=to_timestamp(sample.timestamp),
    )
    return family


class SampleCollector:
    """Collector exposing exactly one sample."""

    def __init__(self, sample: InfluxSample):
        self.sample = sample

    def collect(self) -> Iterator[Metric]:
        yield sample_to_family(self.sample)


class MetricEncoder:
    """Writes samples to a binary stream, one metric family per sample."""

    def __init__(self, stream: BinaryIO, fmt: str = "text"):
        if fmt not in FORMATS:
            raise ValueError(f"Unknown output format '{fmt}', expected one of {', '.join(FORMATS)}")
        self.stream = stream
        self.fmt = fmt
        self._generate = FORMATS[fmt]
        self.families_written = 0

    def encode(self, sample: InfluxSample):
        """Serialize a sample and write it immediately."""
        try:
            output = self._generate(SampleCollector(sample))
        except Exception as e:
            raise MetricEncodeError(f"Failed to encode sample {sample.id}: {e}")

        # OpenMetrics terminates every exposition; one EOF is written by finish()
        if self.fmt == "openmetrics" and output.endswith(OPENMETRICS_EOF):
            output = output[:-len(OPENMETRICS_EOF)]

        self.stream.write(output)
        self.families_written += 1

    def finish(self):
        """Write the format's end-of-exposition marker, if it has one."""
        if self.fmt == "openmetrics":
            self.stream.write(OPENMETRICS_EOF)
        logger.debug(f"Encoded {self.families_written} metric families as {self.fmt}")
