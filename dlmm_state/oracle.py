"""Ring buffer of active-bin observations used as a price oracle."""

from __future__ import annotations

from dataclasses import dataclass, field

SAMPLE_LIFETIME = 120
DEFAULT_OBSERVATION_LENGTH = 100

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_I128_MIN = -(2**127)
_I128_MAX = 2**127 - 1


class OracleError(ArithmeticError):
    """Raised when the oracle cannot record a sample."""


@dataclass
class Observation:
    """One sample of the cumulative active bin id."""

    cumulative_active_bin_id: int = 0
    created_at: int = 0
    last_updated_at: int = 0

    def initialized(self) -> bool:
        return self.created_at > 0 and self.last_updated_at > 0

    def reset(self) -> None:
        self.cumulative_active_bin_id = 0
        self.created_at = 0
        self.last_updated_at = 0

    def accumulate_active_bin_id(self, active_id: int, current_timestamp: int) -> int:
        """Return cumulative_active_bin_id + active_id * elapsed seconds."""
        if not self.initialized():
            return active_id
        delta = current_timestamp - self.last_updated_at
        if not _I64_MIN <= delta <= _I64_MAX:
            raise OracleError("timestamp delta overflow")
        result = self.cumulative_active_bin_id + active_id * delta
        if not _I128_MIN <= result <= _I128_MAX:
            raise OracleError("cumulative active bin id overflow")
        return result

    def compute_next_sampling_timestamp(self, sample_lifetime: int) -> int | None:
        """Timestamp at which a new sample starts, or None if uninitialized."""
        if not self.initialized():
            return None
        result = self.created_at + sample_lifetime
        return result if result <= _I64_MAX else None

    def update(self, cumulative_active_bin_id: int, current_timestamp: int) -> None:
        self.cumulative_active_bin_id = cumulative_active_bin_id
        self.last_updated_at = current_timestamp
        if not self.initialized():
            self.created_at = current_timestamp


@dataclass
class DynamicOracle:
    """Oracle metadata together with its observation ring."""

    length: int = DEFAULT_OBSERVATION_LENGTH
    sample_lifetime: int = SAMPLE_LIFETIME
    idx: int = 0
    active_size: int = 0
    observations: list[Observation] = field(default_factory=list)

    def __post_init__(self) -> None:
        missing = self.length - len(self.observations)
        self.observations.extend(Observation() for _ in range(max(missing, 0)))

    def increase_length(self, length_to_increase: int) -> None:
        """Grow the ring by the given number of observations."""
        if length_to_increase < 0:
            raise OracleError("length can only increase")
        self.length += length_to_increase
        self.observations.extend(Observation() for _ in range(length_to_increase))

    @staticmethod
    def _next_idx(idx: int, bound: int) -> int | None:
        if bound == 0:
            return None
        return (idx + 1) % bound

    def latest_sample(self) -> Observation | None:
        if self.active_size == 0:
            return None
        return self.observations[self.idx]

    def earliest_sample(self) -> Observation | None:
        if self.active_size == 0:
            return None
        next_idx = self._next_idx(self.idx, self.active_size)
        if next_idx is None:
            return None
        return self.observations[next_idx]

    def _next_reset(self) -> Observation | None:
        next_idx = self._next_idx(self.idx, self.length)
        if next_idx is None:
            return None
        self.idx = next_idx
        sample = self.observations[next_idx]
        if not sample.initialized():
            self.active_size = min(self.active_size + 1, self.length)
        sample.reset()
        return sample

    def update(self, active_id: int, current_timestamp: int) -> None:
        """Update the latest sample, starting a new one once it has expired."""
        if self.length == 0 or not self.observations:
            raise OracleError("oracle has no observation slots")
        if self.active_size == 0:
            self.active_size += 1

        latest = self.latest_sample()
        if latest is None:
            raise OracleError("insufficient samples")

        cumulative = latest.accumulate_active_bin_id(active_id, current_timestamp)

        next_sampling = latest.compute_next_sampling_timestamp(self.sample_lifetime)
        if next_sampling is not None and current_timestamp >= next_sampling:
            latest = self._next_reset()
            if latest is None:
                raise OracleError("cannot advance the observation index")
        latest.update(cumulative, current_timestamp)