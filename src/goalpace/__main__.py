"""Allow running as ``python -m goalpace``."""

from goalpace.cli.main import app

app()
