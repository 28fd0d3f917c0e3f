"""
v1.1.0 -> v1.2.0: product catalog.
"""

from_version = "1.1.0"
to_version = "1.2.0"


def migrate(data: dict) -> dict:
    if data.get("version") != from_version:
        return data
    return {**data, "version": to_version, "products": list(data.get("products") or [])}
