#!/usr/bin/env python3
"""
Export OpenAPI schema from FastAPI application
The web frontend generates its TypeScript types from this file
"""

import json
import sys
from pathlib import Path

# Add parent directory to path to import app
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import app


def export_schema(output_dir: Path = None) -> Path:
    """Export OpenAPI schema to JSON file"""
    openapi_schema = app.openapi()

    output_dir = output_dir or Path(__file__).parent.parent / "openapi"
    output_dir.mkdir(exist_ok=True)

    output_file = output_dir / "schema.json"
    with open(output_file, "w") as f:
        json.dump(openapi_schema, f, indent=2, ensure_ascii=False)

    print(f"✅ OpenAPI schema exported to {output_file}")
    print(f"📊 Schema contains {len(openapi_schema.get('paths', {}))} endpoints")

    # Also create a version without x- extensions for better compatibility
    clean_output_file = output_dir / "schema-clean.json"
    with open(clean_output_file, "w") as f:
        json.dump(remove_x_properties(openapi_schema), f, indent=2, ensure_ascii=False)

    print(f"✅ Clean schema exported to {clean_output_file}")
    return output_file


def remove_x_properties(obj):
    """Remove x- vendor extensions for cleaner schema"""
    if isinstance(obj, dict):
        return {k: remove_x_properties(v) for k, v in obj.items() if not k.startswith("x-")}
    elif isinstance(obj, list):
        return [remove_x_properties(item) for item in obj]
    else:
        return obj


if __name__ == "__main__":
    export_schema(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
