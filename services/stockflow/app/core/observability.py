"""In-process metric registry backing the /metrics scrape endpoint.

Accumulators are keyed by MetricKey (name + sorted label pairs). The raw
``name:k=v:k=v`` string form only exists at the durable-store boundary,
see MetricKey.storage_key / MetricKey.parse.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any, Iterable, Mapping, Sequence

LabelPairs = tuple[tuple[str, str], ...]


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    help: str
    kind: MetricKind
    label_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricKey:
    name: str
    labels: LabelPairs = field(default=())

    @classmethod
    def of(cls, name: str, labels: Mapping[str, Any] | None = None) -> "MetricKey":
        normalized = tuple(sorted((str(k), str(v)) for k, v in (labels or {}).items()))
        return cls(name=name, labels=normalized)

    def label_dict(self) -> dict[str, str]:
        return dict(self.labels)

    def storage_key(self) -> str:
        """``<name>:<k1>=<v1>:<k2>=<v2>`` with labels in canonical (sorted) order."""
        return "".join([self.name, *(f":{k}={v}" for k, v in self.labels)])

    @classmethod
    def parse(cls, key: str, prefix: str, label_keys: Sequence[str]) -> "MetricKey | None":
        """Recover a key written by storage_key.

        Segments whose label name is not in ``label_keys`` are ignored.
        Returns None unless every required label was found.
        """
        head = f"{prefix}:"
        if not key.startswith(head):
            return None
        labels: dict[str, str] = {}
        for part in key[len(head):].split(":"):
            name, sep, value = part.partition("=")
            if sep and name in label_keys:
                labels[name] = value
        if len(labels) != len(label_keys):
            return None
        return cls.of(prefix, labels)


class MetricsRegistry:
    """Labeled counters and gauges.

    Every accessor takes the lock, so handlers running on worker threads
    and the event loop can share one instance.
    """

    def __init__(self, definitions: Iterable[MetricDefinition] = ()) -> None:
        self._lock = Lock()
        self._definitions: dict[str, MetricDefinition] = {}
        self._values: dict[str, dict[LabelPairs, float]] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: MetricDefinition) -> None:
        with self._lock:
            self._definitions[definition.name] = definition
            self._values.setdefault(definition.name, {})

    def definition(self, name: str) -> MetricDefinition | None:
        return self._definitions.get(name)

    def _ensure(self, name: str, kind: MetricKind) -> MetricDefinition:
        definition = self._definitions.get(name)
        if definition is None:
            definition = MetricDefinition(name=name, help=name, kind=kind)
            self._definitions[name] = definition
            self._values[name] = {}
        return definition

    def inc(self, name: str, labels: Mapping[str, Any] | None = None, amount: float = 1.0) -> None:
        key = MetricKey.of(name, labels)
        with self._lock:
            definition = self._ensure(name, MetricKind.COUNTER)
            if definition.kind is MetricKind.COUNTER and amount < 0:
                raise ValueError(f"Counter {name} cannot be decremented (amount={amount})")
            series = self._values[name]
            series[key.labels] = series.get(key.labels, 0.0) + float(amount)

    def set(self, name: str, labels: Mapping[str, Any] | None, value: float) -> None:
        key = MetricKey.of(name, labels)
        with self._lock:
            definition = self._ensure(name, MetricKind.GAUGE)
            if definition.kind is not MetricKind.GAUGE:
                raise ValueError(f"{name} is a {definition.kind.value}, only gauges can be set")
            self._values[name][key.labels] = float(value)

    def reset_all(self, name: str) -> None:
        """Drop every label combination of ``name``."""
        with self._lock:
            if name in self._values:
                self._values[name].clear()

    def get(self, name: str, labels: Mapping[str, Any] | None = None) -> float:
        key = MetricKey.of(name, labels)
        with self._lock:
            return self._values.get(name, {}).get(key.labels, 0.0)

    def samples(self, name: str) -> dict[MetricKey, float]:
        with self._lock:
            return {
                MetricKey(name=name, labels=labels): value
                for labels, value in self._values.get(name, {}).items()
            }

    def clear(self) -> None:
        with self._lock:
            for series in self._values.values():
                series.clear()

    @staticmethod
    def _escape(value: str) -> str:
        return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')

    @classmethod
    def _labels_text(cls, labels: LabelPairs) -> str:
        return ",".join(f'{k}="{cls._escape(v)}"' for k, v in labels)

    def render_prometheus(self) -> str:
        rows: list[str] = []
        with self._lock:
            for name in sorted(self._definitions):
                definition = self._definitions[name]
                rows.append(f"# HELP {name} {definition.help}")
                rows.append(f"# TYPE {name} {definition.kind.value}")
                for labels, value in sorted(self._values[name].items()):
                    if labels:
                        rows.append(f"{name}{{{self._labels_text(labels)}}} {value}")
                    else:
                        rows.append(f"{name} {value}")
        return "\n".join(rows) + "\n"
