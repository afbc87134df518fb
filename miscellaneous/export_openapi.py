#!/usr/bin/env python3
"""
Write the OpenAPI document of the GoBus Booking Platform API to disk.

Usage:
    python miscellaneous/export_openapi.py [output.json]
"""

import json
import os
import sys

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gobus_booking_platform.main import app


def export_openapi_spec(output_file: str) -> dict:
    """Render the application's OpenAPI schema into ``output_file``."""
    openapi_schema = app.openapi()
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(openapi_schema, f, indent=2, ensure_ascii=False)
    return openapi_schema


def main():
    output_file = sys.argv[1] if len(sys.argv) > 1 else "openapi.json"
    schema = export_openapi_spec(output_file)

    paths = schema.get("paths", {})
    print(f"✅ {schema['info']['title']} {schema['info']['version']} written to {output_file}")
    for path in sorted(paths):
        print(f"  {path}: {', '.join(method.upper() for method in paths[path])}")


if __name__ == "__main__":
    main()
