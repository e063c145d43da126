"""Digital Asset Links statements proving the app and the site belong together."""

from __future__ import annotations

import json

RELATION = "delegate_permission/common.handle_all_urls"


def asset_link_statements(package_id: str, *sha256_fingerprints: str) -> list[dict]:
    return [
        {
            "relation": [RELATION],
            "target": {
                "namespace": "android_app",
                "package_name": package_id,
                "sha256_cert_fingerprints": [fingerprint],
            },
        }
        for fingerprint in sha256_fingerprints
    ]


def generate_asset_links(package_id: str, *sha256_fingerprints: str) -> str:
    """The ``/.well-known/assetlinks.json`` document, one statement per fingerprint."""
    return json.dumps(asset_link_statements(package_id, *sha256_fingerprints), indent=2)


__all__ = ["asset_link_statements", "generate_asset_links"]
