"""Plain records shared across the package."""

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyPair:
    """A cryptographic key pair."""

    private_key: str
    public_key: str


@dataclass(frozen=True)
class Command:
    """A previously executed command and where it ran."""

    cmdline: str
    node: int
    server_id: int


@dataclass(frozen=True)
class EndPoint:
    """An endpoint reached with basic auth."""

    url: str
    user: str
    password: str