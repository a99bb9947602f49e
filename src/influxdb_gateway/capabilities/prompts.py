"""Prompt templates for writing Flux queries and line protocol."""

from __future__ import annotations

from typing import Any

from ..protocol.registry import CapabilityKind, CapabilityRegistry

FLUX_QUERY_EXAMPLES = """Here are some example Flux queries for InfluxDB:

1. Get data from the last 5 minutes:
```flux
from(bucket: "my-bucket")
  |> range(start: -5m)
  |> filter(fn: (r) => r._measurement == "cpu_usage")
```

2. Calculate the average value over time windows:
```flux
from(bucket: "my-bucket")
  |> range(start: -1h)
  |> filter(fn: (r) => r._measurement == "temperature")
  |> aggregateWindow(every: 5m, fn: mean)
```

3. Find the maximum value:
```flux
from(bucket: "my-bucket")
  |> range(start: -24h)
  |> filter(fn: (r) => r._measurement == "temperature" and r.sensor_id == "TLM0201")
  |> max()
```

4. Group by a tag and calculate statistics:
```flux
from(bucket: "my-bucket")
  |> range(start: -1d)
  |> filter(fn: (r) => r._measurement == "network_traffic")
  |> group(columns: ["host"])
  |> mean()
```

5. Join two data sources:
```flux
cpu = from(bucket: "my-bucket")
  |> range(start: -15m)
  |> filter(fn: (r) => r._measurement == "cpu")

mem = from(bucket: "my-bucket")
  |> range(start: -15m)
  |> filter(fn: (r) => r._measurement == "mem")

join(tables: {cpu: cpu, mem: mem}, on: ["_time", "host"])
```

Please adjust these queries to match your specific bucket names, measurements, and requirements."""

LINE_PROTOCOL_GUIDE = """# InfluxDB Line Protocol Guide

Line protocol is the text format for writing data to InfluxDB. It follows this structure:

```
measurement,tag-key=tag-value field-key="field-value" timestamp
```

## Components:

1. **Measurement**: Name of the measurement (similar to a table in SQL)
2. **Tags**: Key-value pairs for metadata (used for indexing, optional)
3. **Fields**: Key-value pairs for the actual data values (required)
4. **Timestamp**: Unix timestamp in the specified precision (optional, defaults to current time)

## Examples:

1. Basic point:
```
temperature,room=kitchen value=72.1 1631025259000000000
```

2. Multiple fields:
```
weather,location=us-midwest temperature=82.0,humidity=54.0,pressure=1012.1 1631025259000000000
```

3. Multiple tags:
```
cpu_usage,host=server01,region=us-west cpu=64.2,mem=47.3 1631025259000000000
```

4. Different data types:
```
readings,device=thermostat temperature=72.1,active=true,status="normal" 1631025259000000000
```

## Notes:
- Escape special characters in string field values with double quotes and backslashes
- Do not use double quotes for tag values
- Timestamps are in nanoseconds by default, but can be in other precisions (set with the precision parameter)
- Multiple points can be written by separating them with newlines

## Common Issues:
- Field values require a type indicator (no quotes for numbers, true/false for booleans, quotes for strings)
- At least one field is required per point
- Special characters (spaces, commas) in measurement names, tag keys, tag values, or field keys must be escaped
- Timestamps should match the specified precision"""

PROMPTS = {
    "flux-query-examples": ("Examples of Flux query patterns", FLUX_QUERY_EXAMPLES),
    "line-protocol-guide": ("Guide for InfluxDB line protocol format", LINE_PROTOCOL_GUIDE),
}


def prompt_result(description: str, text: str) -> dict[str, Any]:
    return {
        "description": description,
        "messages": [{"role": "user", "content": {"type": "text", "text": text}}],
    }


def register_prompts(registry: CapabilityRegistry) -> None:
    for name, (description, text) in PROMPTS.items():

        def handler(args: dict[str, Any], description: str = description, text: str = text):
            return prompt_result(description, text)

        registry.register(CapabilityKind.PROMPT, name, handler, description=description)
