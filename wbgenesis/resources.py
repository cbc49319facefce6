"""Per-node resource limits and their validation against the configured maxima."""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field

from wbgenesis.config import TRACE, Config, get_config
from wbgenesis.validate import ValidationError, validate_command_line

logger = logging.getLogger(__name__)

_MULTIPLIERS = (
    (("kb", "k"), 1000),
    (("mb", "m"), 1000000),
    (("gb", "g"), 1000000000),
    (("tb", "t"), 1000000000000),
)
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_memory(mem: str) -> int:
    """Convert a memory amount such as "512mb" or "2G" to bytes.

    A missing unit means bytes. Raises ValueError when the number cannot be parsed.
    """
    text = mem.lower()
    multiplier = 1
    for suffixes, factor in _MULTIPLIERS:
        if text.endswith(suffixes):
            multiplier = factor
            break
    number = text.strip("bgkmt")
    if not _INTEGER.fullmatch(number):
        raise ValueError(f"invalid memory amount {mem!r}")
    value = int(number)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"memory amount {mem!r} out of range")
    return value * multiplier


@dataclass
class Resources:
    """The maximum resources a node may use.

    cpus is a float as text: the share of one core's time, possibly above 1.0.
    memory is an amount up to terabytes; without a unit it is bytes.
    """

    cpus: str = ""
    memory: str = ""
    volumes: list[str] = field(default_factory=list)
    ports: list[str] = field(default_factory=list)

    def get_memory(self) -> int:
        """The memory limit in bytes."""
        return parse_memory(self.memory)

    def validate(self, config: Config | None = None) -> None:
        """Raise ValueError (ValidationError for policy violations) if the limits are not allowed."""
        if self.no_limits():
            return
        config = get_config() if config is None else config

        validate_command_line(self.memory)
        validate_command_line(self.cpus)

        if not self.no_memory_limits():
            given = self.get_memory()
            if config.max_node_memory:
                try:
                    maximum = parse_memory(config.max_node_memory)
                except ValueError:
                    logger.critical(
                        "error parsing memory limit %r. check config file.",
                        config.max_node_memory,
                    )
                    raise
                logger.log(TRACE, "checking memory: max %d, given %d", maximum, given)
                if given > maximum:
                    raise ValidationError(
                        f"assigning too much RAM: max is {config.max_node_memory}"
                    )

        if not self.no_cpu_limits():
            maximum_cpu = config.max_node_cpu
            given_cpu = float(self.cpus)
            if maximum_cpu > 0 and given_cpu > maximum_cpu:
                raise ValidationError(f"assigning too much CPU: max is {maximum_cpu:f}")

    def validate_and_set_defaults(self, config: Config | None = None) -> "Resources":
        """Validate, then return a copy with unset limits filled from the configured maxima."""
        config = get_config() if config is None else config
        self.validate(config)
        filled = dataclasses.replace(self, volumes=list(self.volumes), ports=list(self.ports))
        if filled.no_cpu_limits():
            filled.cpus = f"{config.max_node_cpu:f}"
        if filled.no_memory_limits():
            filled.memory = config.max_node_memory
        return filled

    def no_limits(self) -> bool:
        """Whether neither a memory nor a cpu limit is given."""
        return self.no_memory_limits() and self.no_cpu_limits()

    def no_cpu_limits(self) -> bool:
        """Whether no cpu limit is given."""
        return not self.cpus

    def no_memory_limits(self) -> bool:
        """Whether no memory limit is given."""
        return not self.memory