"""The startup banner."""

import sys

BANNER = (
    "                            _     \n"
    "                           (_)    \n"
    "  __ _  ___ _ __   ___  ___ _ ___ \n"
    " / _` |/ _ \\ '_ \\ / _ \\/ __| / __|\n"
    "| (_| |  __/ | | |  __/\\__ \\ \\__ \\\n"
    " \\__, |\\___|_| |_|\\___||___/_|___/\n"
    "  __/ |                           \n"
    " |___/                            "
)


def display_banner() -> str:
    """Write the startup banner to standard output and return it."""
    stream = sys.stdout
    stream.write(BANNER + "\n")
    stream.flush()
    return BANNER