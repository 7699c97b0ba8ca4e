#!/usr/bin/env python3
"""Export the gateway's OpenAPI document to a file for client generation."""

import json
import os
import sys
from pathlib import Path

from partner_gateway.main import create_app


def export_openapi_spec(output_path: str = "openapi.json") -> Path:
    """Write the OpenAPI document of a freshly built app to ``output_path``."""
    openapi_schema = create_app().openapi()

    output_file = Path(output_path)
    with open(output_file, "w") as f:
        json.dump(openapi_schema, f, indent=2)

    print(f"OpenAPI specification exported to: {output_file.absolute()}")
    print(f"   Paths: {len(openapi_schema.get('paths', {}))}")
    print(f"   File size: {output_file.stat().st_size:,} bytes")
    return output_file


if __name__ == "__main__":
    output_path = os.getenv("OPENAPI_OUTPUT", "openapi.json")

    # Allow override via command line
    if len(sys.argv) > 1:
        output_path = sys.argv[1]

    export_openapi_spec(output_path)
