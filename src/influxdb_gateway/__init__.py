"""InfluxDB Gateway - InfluxDB capabilities over stdio or HTTP."""

__version__ = "1.0.0"
