import logging

import pytest

from twaforge.handlers import (
    FileHandler,
    ProtocolHandler,
    RejectionReason,
    normalize_protocol,
    normalize_url,
    process_file_handlers,
    process_protocol_handlers,
    url_origin,
)
from twaforge.web_manifest import FileHandlerJson, ProtocolHandlerJson

START_URL = "https://test.com/app/start"
SCOPE_URL = "https://test.com/app/"

test_logger = logging.getLogger("tests.handlers")


@pytest.mark.parametrize(
    ("protocol", "expected"),
    [
        ("XMPP", "xmpp"),
        ("mailto", "mailto"),
        ("web+Coffee", "web+coffee"),
        ("web+tea", "web+tea"),
        ("something-else", None),
        ("web+", None),
        ("web+caf3", None),
        ("tel", None),
    ],
)
def test_normalize_protocol(protocol, expected):
    assert normalize_protocol(protocol, test_logger) == expected


def test_relative_url_resolves_against_start_url():
    assert normalize_url("?coffee=%s", START_URL, SCOPE_URL) == (
        "https://test.com/app/start?coffee=%s"
    )


def test_relative_url_skips_scope_checks():
    assert normalize_url("/elsewhere?coffee=%s", START_URL, SCOPE_URL) == (
        "https://test.com/elsewhere?coffee=%s"
    )


def test_absolute_url_in_scope_is_accepted():
    assert normalize_url("https://test.com/app/tea?t=%s", START_URL, SCOPE_URL) == (
        "https://test.com/app/tea?t=%s"
    )


@pytest.mark.parametrize(
    "url",
    [
        "https://other.com/app/?coffee=%s",
        "http://test.com/app/?coffee=%s",
        "https://test.com/outside/?coffee=%s",
        "https://test.com:8443/app/?coffee=%s",
        "https://test.com/app/?coffee=",
    ],
)
def test_rejected_urls(url):
    assert normalize_url(url, START_URL, SCOPE_URL, log=test_logger) is None


def test_rejection_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="tests.handlers"):
        result = normalize_url("https://other.com/?q=%s", START_URL, SCOPE_URL, log=test_logger)
    assert result is None
    assert "invalid origin" in caplog.text
    assert "https://other.com/?q=%s" in caplog.text


def test_normalize_url_does_not_raise_on_malformed_input():
    assert normalize_url("https://[::1/?q=%s", START_URL, SCOPE_URL, log=test_logger) is None


def test_url_origin_drops_default_port():
    assert url_origin("https://Test.com:443/a") == "https://test.com"
    assert url_origin("https://test.com:8443/a") == "https://test.com:8443"


def test_process_protocol_handlers_reports_reasons():
    handlers = [
        ProtocolHandlerJson(protocol="web+coffee", url="?coffee=%s"),
        ProtocolHandlerJson(protocol="MAILTO", url="https://test.com/app/mail?to=%s"),
        ProtocolHandlerJson(protocol="bogus", url="?q=%s"),
        ProtocolHandlerJson(protocol="web+tea", url="?tea"),
        ProtocolHandlerJson(protocol="web+cake", url="https://evil.com/app/?q=%s"),
        ProtocolHandlerJson(protocol="web+pie", url="http://test.com/app/?q=%s"),
        ProtocolHandlerJson(protocol="web+pop", url="https://test.com/other?q=%s"),
        ProtocolHandlerJson(protocol="web+nourl"),
    ]

    result = process_protocol_handlers(handlers, START_URL, SCOPE_URL)

    assert result.accepted == [
        ProtocolHandler(protocol="web+coffee", url="https://test.com/app/start?coffee=%s"),
        ProtocolHandler(protocol="mailto", url="https://test.com/app/mail?to=%s"),
    ]
    assert [r.reason for r in result.rejections] == [
        RejectionReason.INVALID_PROTOCOL,
        RejectionReason.MISSING_PLACEHOLDER,
        RejectionReason.ORIGIN_MISMATCH,
        RejectionReason.INVALID_SCHEME,
        RejectionReason.OUT_OF_SCOPE,
        RejectionReason.MISSING_FIELDS,
    ]
    assert result.rejections[0].input is handlers[2]


def test_process_file_handlers():
    handlers = [
        FileHandlerJson(action="/app/open-csv", accept={"text/csv": [".csv"]}),
        FileHandlerJson(
            action="https://test.com/app/open-img",
            accept={"image/png": ".png", "image/jpeg": [".jpg", ".jpeg"]},
        ),
        FileHandlerJson(action="/elsewhere", accept={"text/plain": ".txt"}),
        FileHandlerJson(action="https://other.com/app/x", accept={"text/plain": ".txt"}),
        FileHandlerJson(action="/app/empty", accept={}),
        FileHandlerJson(accept={"text/plain": ".txt"}),
    ]

    result = process_file_handlers(handlers, START_URL, SCOPE_URL)

    assert result.accepted == [
        FileHandler(action_url="https://test.com/app/open-csv", mime_types=["text/csv"]),
        FileHandler(
            action_url="https://test.com/app/open-img", mime_types=["image/png", "image/jpeg"]
        ),
    ]
    assert [r.reason for r in result.rejections] == [
        RejectionReason.OUT_OF_SCOPE,
        RejectionReason.ORIGIN_MISMATCH,
        RejectionReason.MISSING_FIELDS,
        RejectionReason.MISSING_FIELDS,
    ]


def test_file_handler_serializes_with_camel_case_keys():
    handler = FileHandler(action_url="https://test.com/app/x", mime_types=["text/csv"])
    assert handler.model_dump(by_alias=True) == {
        "actionUrl": "https://test.com/app/x",
        "mimeTypes": ["text/csv"],
    }


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ('?q=%s&x="', "https://test.com/app/start?q=%s&x=%22"),
        ("/app/a b?q=%s", "https://test.com/app/a%20b?q=%s"),
        ("https://TEST.com/app/café?q=%s#<x>", "https://test.com/app/caf%C3%A9?q=%s#%3Cx%3E"),
    ],
)
def test_accepted_urls_are_percent_encoded(url, expected):
    assert normalize_url(url, START_URL, SCOPE_URL) == expected


def test_file_handler_action_is_percent_encoded():
    result = process_file_handlers(
        [{"action": '/app/open"it"', "accept": {"text/csv": ".csv"}}], START_URL, SCOPE_URL
    )
    assert result.accepted[0].action_url == "https://test.com/app/open%22it%22"


def test_malformed_protocol_entries_are_rejected_individually():
    handlers = [
        {"protocol": "web+coffee", "url": 5},
        "web+tea",
        {"protocol": ["web+cake"], "url": "?q=%s"},
        {"protocol": "web+pie", "url": "?pie=%s"},
    ]

    result = process_protocol_handlers(handlers, START_URL, SCOPE_URL)

    assert result.accepted == [
        ProtocolHandler(protocol="web+pie", url="https://test.com/app/start?pie=%s")
    ]
    assert [r.reason for r in result.rejections] == [
        RejectionReason.INVALID_URL,
        RejectionReason.MISSING_FIELDS,
        RejectionReason.MISSING_FIELDS,
    ]
    assert result.rejections[1].input == "web+tea"


def test_malformed_file_entries_are_rejected_individually():
    handlers = [
        {"action": "/app/list", "accept": ["text/csv"]},
        {"action": 7, "accept": {"text/csv": ".csv"}},
        None,
        {"action": "/app/open", "accept": {"text/csv": ".csv"}},
    ]

    result = process_file_handlers(handlers, START_URL, SCOPE_URL)

    assert result.accepted == [
        FileHandler(action_url="https://test.com/app/open", mime_types=["text/csv"])
    ]
    assert [r.reason for r in result.rejections] == [
        RejectionReason.MISSING_FIELDS,
        RejectionReason.INVALID_URL,
        RejectionReason.MISSING_FIELDS,
    ]
