import json

from twaforge.digital_asset_links import RELATION, asset_link_statements, generate_asset_links

FIRST = ":".join(["AB"] * 32)
SECOND = ":".join(["CD"] * 32)


def test_one_statement_per_fingerprint():
    statements = json.loads(generate_asset_links("com.example.twa", FIRST, SECOND))

    assert statements == [
        {
            "relation": [RELATION],
            "target": {
                "namespace": "android_app",
                "package_name": "com.example.twa",
                "sha256_cert_fingerprints": [fingerprint],
            },
        }
        for fingerprint in (FIRST, SECOND)
    ]


def test_no_fingerprints_gives_empty_list():
    assert asset_link_statements("com.example.twa") == []
    assert json.loads(generate_asset_links("com.example.twa")) == []
