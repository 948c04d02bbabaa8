"""Allow running vhicli with ``python -m vhicli``."""

from .cli.main import app

app()
