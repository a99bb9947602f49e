"""InfluxDB access used by the gateway's capabilities."""

from .client import DomainError, InfluxClient, InfluxError
from .flux import column_values, flux_string, parse_flux_csv

__all__ = [
    "DomainError",
    "InfluxClient",
    "InfluxError",
    "column_values",
    "flux_string",
    "parse_flux_csv",
]
