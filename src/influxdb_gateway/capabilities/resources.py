"""InfluxDB resources and resource templates."""

from __future__ import annotations

import logging
from typing import Any

from ..influx.client import DomainError, InfluxClient
from ..influx.flux import column_values, flux_string
from ..protocol.registry import CapabilityKind, CapabilityRegistry

ORGS_URI = "influxdb://orgs"
BUCKETS_URI = "influxdb://buckets"
MEASUREMENTS_TEMPLATE = "influxdb://bucket/{bucketName}/measurements"
QUERY_TEMPLATE = "influxdb://query/{orgName}/{fluxQuery}"


def resource_contents(uri: str, text: str, mime_type: str = "text/plain") -> dict[str, Any]:
    return {"contents": [{"uri": uri, "mimeType": mime_type, "text": text}]}


class InfluxResources:
    """Resource handlers bound to one InfluxDB client."""

    def __init__(
        self,
        client: InfluxClient,
        default_org: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._default_org = default_org
        self._log = logger or logging.getLogger(__name__)

    def register(self, registry: CapabilityRegistry) -> None:
        registry.register(
            CapabilityKind.RESOURCE,
            ORGS_URI,
            self.organizations,
            title="Organizations",
            description="List InfluxDB organizations",
            mime_type="text/plain",
        )
        registry.register(
            CapabilityKind.RESOURCE,
            BUCKETS_URI,
            self.buckets,
            title="Buckets",
            description="List InfluxDB buckets",
            mime_type="text/plain",
        )
        registry.register(
            CapabilityKind.RESOURCE,
            MEASUREMENTS_TEMPLATE,
            self.bucket_measurements,
            title="bucket-measurements",
            description="Measurements in a bucket of the default organization",
            mime_type="text/plain",
            uri_template=MEASUREMENTS_TEMPLATE,
        )
        registry.register(
            CapabilityKind.RESOURCE,
            QUERY_TEMPLATE,
            self.query,
            title="query",
            description="Result of a URL-encoded Flux query as annotated CSV",
            mime_type="text/csv",
            uri_template=QUERY_TEMPLATE,
        )

    async def organizations(self, args: dict[str, Any]) -> dict[str, Any]:
        orgs = await self._client.list_orgs()
        rows = "\n".join(
            f"ID: {o.get('id')} | Name: {o.get('name')} | "
            f"Description: {o.get('description') or 'N/A'}"
            for o in orgs
        )
        return resource_contents(args.get("uri", ORGS_URI), f"# InfluxDB Organizations\n\n{rows}")

    async def buckets(self, args: dict[str, Any]) -> dict[str, Any]:
        buckets = await self._client.list_buckets()
        rows = []
        for b in buckets:
            rules = b.get("retentionRules") or []
            retention = (rules[0].get("everySeconds") if rules else None) or "∞"
            rows.append(
                f"ID: {b.get('id')} | Name: {b.get('name')} | "
                f"Organization ID: {b.get('orgID')} | Retention Period: {retention} seconds"
            )
        return resource_contents(
            args.get("uri", BUCKETS_URI), "# InfluxDB Buckets\n\n" + "\n".join(rows)
        )

    async def bucket_measurements(self, args: dict[str, Any]) -> dict[str, Any]:
        if not self._default_org:
            raise DomainError("INFLUXDB_ORG environment variable is not set")

        bucket = args["bucketName"]
        flux = (
            'import "influxdata/influxdb/schema"\n\n'
            f"schema.measurements(bucket: {flux_string(bucket)})"
        )
        measurements = column_values(await self._client.query(self._default_org, flux), "_value")
        uri = args.get("uri", MEASUREMENTS_TEMPLATE.format(bucketName=bucket))

        if not measurements:
            return resource_contents(uri, f"No measurements found in bucket: {bucket}")
        return resource_contents(
            uri, f"# Measurements in Bucket: {bucket}\n\n" + "\n".join(measurements)
        )

    async def query(self, args: dict[str, Any]) -> dict[str, Any]:
        # Template variables arrive URL-decoded
        org, flux = args["orgName"], args["fluxQuery"]
        self._log.debug(f"Resource query for org {org}")
        csv_text = await self._client.query(org, flux)
        return resource_contents(args.get("uri", ""), csv_text, mime_type="text/csv")
