"""Allow running as ``python -m influxdb_gateway``."""

from .cli import main

main()
