"""Data structures for flattened InfluxDB samples."""
from dataclasses import dataclass, field
from typing import Dict


def build_identity(name: str, labels: Dict[str, str]) -> str:
    """Generate a stable series identity from the name and sorted labels."""
    parts = [name]
    for key in sorted(labels):
        parts.append(key)
        parts.append(labels[key])
    return ".".join(parts)


@dataclass
class InfluxSample:
    """A single scalar observation derived from one point field."""
    name: str
    labels: Dict[str, str]
    value: float
    timestamp: int  # nanoseconds since the epoch
    id: str = field(default="")

    def __post_init__(self):
        if not self.id:
            self.id = self.identity()

    def identity(self) -> str:
        return build_identity(self.name, self.labels)


@dataclass
class ConversionStats:
    """Counters for a single conversion run."""
    points: int = 0
    samples: int = 0
    skipped_points: int = 0
    skipped_fields: int = 0
