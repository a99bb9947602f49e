"""InfluxDB tools.

Each tool is an async handler taking the ``arguments`` mapping of a
``tools/call`` request and returning ``{"content": [{"type": "text", ...}]}``.
Failures raise ``DomainError`` / ``InfluxError``; the dispatcher turns those
into error replies.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from ..influx.client import DomainError, InfluxClient, InfluxError
from ..influx.flux import column_values, flux_string
from ..protocol.registry import CapabilityKind, CapabilityRegistry

PRECISIONS = ["ns", "us", "ms", "s"]

# Tag values listed before truncating
MAX_TAG_VALUES = 50


def text_content(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def _string(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _object(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


ORG = _string("InfluxDB organization name")
BUCKET = _string("InfluxDB bucket name")

TOOL_DECLARATIONS: list[tuple[str, str, dict[str, Any]]] = [
    (
        "write-data",
        "Write time-series data to InfluxDB using line protocol. "
        "Format: 'measurement,tag1=value1 field1=value1 [timestamp]', "
        "one point per line.",
        _object(
            {
                "org": ORG,
                "bucket": BUCKET,
                "data": _string("Data in InfluxDB line protocol format"),
                "precision": _string(
                    "Timestamp precision (ns, us, ms, s). Defaults to nanoseconds.",
                    enum=PRECISIONS,
                ),
            },
            ["org", "bucket", "data"],
        ),
    ),
    (
        "query-data",
        "Execute a Flux query and return the annotated CSV result. "
        "Example: from(bucket: \"my-bucket\") |> range(start: -1h)",
        _object({"org": ORG, "query": _string("Flux query string")}, ["org", "query"]),
    ),
    (
        "create-bucket",
        "Create a new bucket, optionally with a retention period.",
        _object(
            {
                "name": _string("Bucket name, unique within the organization"),
                "orgID": _string("ID (not name) of the owning organization"),
                "retentionPeriodSeconds": {
                    "type": "number",
                    "description": "Retention period in seconds. Omit to keep data forever.",
                },
            },
            ["name", "orgID"],
        ),
    ),
    (
        "create-org",
        "Create a new organization.",
        _object(
            {
                "name": _string("Organization name"),
                "description": _string("Organization description"),
            },
            ["name"],
        ),
    ),
    (
        "list-databases",
        "List all buckets with their organization and retention settings.",
        _object({}),
    ),
    (
        "get-measurements",
        "List the measurements written to a bucket in the last 30 days.",
        _object({"org": ORG, "bucket": BUCKET}, ["org", "bucket"]),
    ),
    (
        "get-bucket-info",
        "Show a bucket's details, retention policy and recent point count.",
        _object(
            {"bucketName": _string("Bucket to describe"), "org": ORG},
            ["bucketName", "org"],
        ),
    ),
    (
        "get-measurement-schema",
        "List the tag keys and field keys of a measurement.",
        _object(
            {"org": ORG, "bucket": BUCKET, "measurement": _string("Measurement name")},
            ["org", "bucket", "measurement"],
        ),
    ),
    (
        "get-tag-values",
        "List the distinct values of a tag key, optionally within one measurement.",
        _object(
            {
                "org": ORG,
                "bucket": BUCKET,
                "tagKey": _string("Tag key to enumerate"),
                "measurement": _string("Restrict to this measurement"),
            },
            ["org", "bucket", "tagKey"],
        ),
    ),
    (
        "health-check",
        "Check that the InfluxDB server is reachable and report its version.",
        _object({}),
    ),
]


def format_retention(rules: list[dict[str, Any]] | None) -> str:
    if not rules:
        return "Infinite (no automatic deletion)"
    rule = rules[0]
    seconds = rule.get("everySeconds")
    if rule.get("type") != "expire" or not seconds:
        return "Custom retention policy"

    days, remainder = divmod(int(seconds), 86400)
    hours = remainder // 3600
    if days:
        text = f"{days} day{'s' if days > 1 else ''}"
        return f"{text} {hours}h" if hours else text
    if hours:
        return f"{hours} hour{'s' if hours > 1 else ''}"
    return f"{seconds} seconds"


class InfluxTools:
    """Tool handlers bound to one InfluxDB client."""

    def __init__(self, client: InfluxClient, logger: logging.Logger | None = None) -> None:
        self._client = client
        self._log = logger or logging.getLogger(__name__)
        self._handlers = {
            "write-data": self.write_data,
            "query-data": self.query_data,
            "create-bucket": self.create_bucket,
            "create-org": self.create_org,
            "list-databases": self.list_databases,
            "get-measurements": self.get_measurements,
            "get-bucket-info": self.get_bucket_info,
            "get-measurement-schema": self.get_measurement_schema,
            "get-tag-values": self.get_tag_values,
            "health-check": self.health_check,
        }

    def register(self, registry: CapabilityRegistry) -> None:
        for name, description, schema in TOOL_DECLARATIONS:
            registry.register(
                CapabilityKind.TOOL,
                name,
                self._handlers[name],
                schema,
                description=description,
            )

    # =========================================================================
    # Data
    # =========================================================================

    async def write_data(self, args: dict[str, Any]) -> dict[str, Any]:
        precision = args.get("precision")
        if precision is not None and precision not in PRECISIONS:
            raise DomainError(f"Invalid precision {precision!r}; use one of {PRECISIONS}")

        data = args["data"]
        self._log.info(f"Writing {len(data)} bytes to {args['org']}/{args['bucket']}")
        await self._client.write(args["org"], args["bucket"], data, precision)
        return text_content("Data written successfully")

    async def query_data(self, args: dict[str, Any]) -> dict[str, Any]:
        return text_content(await self._client.query(args["org"], args["query"]))

    # =========================================================================
    # Administration
    # =========================================================================

    async def create_bucket(self, args: dict[str, Any]) -> dict[str, Any]:
        retention = args.get("retentionPeriodSeconds")
        bucket = await self._client.create_bucket(
            args["name"], args["orgID"], int(retention) if retention else None
        )
        return text_content(
            "Bucket created successfully:\n"
            f"ID: {bucket.get('id')}\n"
            f"Name: {bucket.get('name')}\n"
            f"Organization ID: {bucket.get('orgID')}"
        )

    async def create_org(self, args: dict[str, Any]) -> dict[str, Any]:
        org = await self._client.create_org(args["name"], args.get("description"))
        return text_content(
            "Organization created successfully:\n"
            f"ID: {org.get('id')}\n"
            f"Name: {org.get('name')}\n"
            f"Description: {org.get('description') or 'N/A'}"
        )

    # =========================================================================
    # Exploration
    # =========================================================================

    async def list_databases(self, args: dict[str, Any]) -> dict[str, Any]:
        buckets = await self._client.list_buckets()
        if not buckets:
            return text_content("No buckets found")

        entries = []
        for bucket in buckets:
            rules = bucket.get("retentionRules") or []
            seconds = rules[0].get("everySeconds") if rules else None
            retention = f"{seconds} seconds" if seconds else "Infinite"
            entries.append(
                f"- {bucket.get('name')} (ID: {bucket.get('id')})\n"
                f"  Organization: {bucket.get('orgID')}\n"
                f"  Retention: {retention}\n"
                f"  Created: {bucket.get('createdAt')}"
            )
        return text_content(f"Found {len(buckets)} buckets:\n\n" + "\n\n".join(entries))

    async def get_measurements(self, args: dict[str, Any]) -> dict[str, Any]:
        bucket = args["bucket"]
        flux = (
            'import "influxdata/influxdb/schema"\n'
            f"schema.measurements(bucket: {flux_string(bucket)}, start: -30d)"
        )
        measurements = column_values(await self._client.query(args["org"], flux), "_value")

        if not measurements:
            return text_content(
                f'No measurements found in bucket "{bucket}" for the last 30 days.'
            )
        listing = "\n".join(f"- {m}" for m in measurements)
        return text_content(
            f'Found {len(measurements)} measurement(s) in bucket "{bucket}":\n\n{listing}'
        )

    async def get_bucket_info(self, args: dict[str, Any]) -> dict[str, Any]:
        name = args["bucketName"]
        buckets = await self._client.list_buckets()
        bucket = next((b for b in buckets if b.get("name") == name), None)
        if bucket is None:
            available = ", ".join(b.get("name", "?") for b in buckets) or "none"
            raise DomainError(f'Bucket "{name}" not found. Available buckets: {available}')

        flux = (
            f"from(bucket: {flux_string(name)})\n"
            "  |> range(start: -30d)\n"
            "  |> group()\n"
            "  |> count()"
        )
        try:
            counts = column_values(await self._client.query(args["org"], flux), "_value")
            point_count = counts[0] if counts else "0"
        except InfluxError as e:
            self._log.warning(f"Point count for bucket {name} unavailable: {e}")
            point_count = "Unable to calculate"

        lines = [
            f'Bucket "{bucket.get("name")}"',
            f"ID: {bucket.get('id')}",
            f"Organization ID: {bucket.get('orgID')}",
            f"Type: {bucket.get('type') or 'user'}",
            f"Created: {bucket.get('createdAt')}",
            f"Updated: {bucket.get('updatedAt')}",
            f"Retention: {format_retention(bucket.get('retentionRules'))}",
            f"Data points (last 30 days): {point_count}",
            f"Schema type: {bucket.get('schemaType') or 'implicit'}",
        ]
        if bucket.get("description"):
            lines.append(f"Description: {bucket['description']}")
        return text_content("\n".join(lines))

    async def get_measurement_schema(self, args: dict[str, Any]) -> dict[str, Any]:
        org, bucket, measurement = args["org"], args["bucket"], args["measurement"]
        scope = (
            f"bucket: {flux_string(bucket)}, "
            f"measurement: {flux_string(measurement)}, start: -30d"
        )
        field_flux = f'import "influxdata/influxdb/schema"\nschema.measurementFieldKeys({scope})'
        tag_flux = f'import "influxdata/influxdb/schema"\nschema.measurementTagKeys({scope})'

        fields = column_values(await self._client.query(org, field_flux), "_value")
        # Tag keys include the _start/_stop/_field/_measurement system columns
        tags = [
            t for t in column_values(await self._client.query(org, tag_flux), "_value")
            if not t.startswith("_")
        ]

        def listing(keys: list[str], empty: str) -> str:
            return "\n".join(f"  - {k}" for k in keys) if keys else f"  ({empty})"

        return text_content(
            f'Schema for measurement "{measurement}" in bucket "{bucket}":\n\n'
            f"Tag keys:\n{listing(tags, 'No tag keys found')}\n\n"
            f"Field keys:\n{listing(fields, 'No field keys found')}"
        )

    async def get_tag_values(self, args: dict[str, Any]) -> dict[str, Any]:
        bucket, tag_key = args["bucket"], args["tagKey"]
        measurement = args.get("measurement")

        params = [f"bucket: {flux_string(bucket)}", f"tag: {flux_string(tag_key)}"]
        if measurement:
            params.append(f"predicate: (r) => r._measurement == {flux_string(measurement)}")
        params.append("start: -30d")
        flux = f'import "influxdata/influxdb/schema"\nschema.tagValues({", ".join(params)})'

        values = sorted(column_values(await self._client.query(args["org"], flux), "_value"))
        context = f' for measurement "{measurement}"' if measurement else ""

        if not values:
            return text_content(f'No values found for tag "{tag_key}"{context} in bucket "{bucket}".')

        shown = "\n".join(f"{i}. {v}" for i, v in enumerate(values[:MAX_TAG_VALUES], 1))
        if len(values) > MAX_TAG_VALUES:
            shown += f"\n... and {len(values) - MAX_TAG_VALUES} more values"
        return text_content(
            f'Tag values for "{tag_key}"{context} ({len(values)} unique):\n\n{shown}'
        )

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self, args: dict[str, Any]) -> dict[str, Any]:
        started = time.perf_counter()
        headers = await self._client.ping()
        duration_ms = (time.perf_counter() - started) * 1000

        return text_content(
            "InfluxDB Health Check - HEALTHY\n\n"
            f"URL: {self._client.base_url}\n"
            f"Response Time: {duration_ms:.0f}ms\n"
            f"Version: {headers.get('x-influxdb-version', 'Unknown')}\n"
            f"Build: {headers.get('x-influxdb-build', 'Unknown')}\n"
            f"Timestamp: {datetime.now(UTC).isoformat()}"
        )
