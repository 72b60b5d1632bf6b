from __future__ import annotations

import asyncio
import logging

import aiohttp
import pytest

from labbcat_cli.api.client import LabbcatClient, build_query, encode_query
from labbcat_cli.exceptions import TransportError
from labbcat_cli.models.config import ClientConfig


def test_sequences_repeat_the_key_in_order() -> None:
    assert encode_query({"k": ["a", "b"], "x": "1"}) == "k=a&k=b&x=1"


def test_empty_values_are_left_out() -> None:
    assert build_query({"a": "", "b": None, "c": [], "d": False}) == []


def test_zero_and_booleans_are_sent() -> None:
    assert build_query({"n": 0, "t": True}) == [("n", "0"), ("t", "true")]


def test_values_are_percent_encoded() -> None:
    assert encode_query({"expression": "my('corpus').label == 'CC'"}) == (
        "expression=my%28%27corpus%27%29.label%20%3D%3D%20%27CC%27"
    )


@pytest.mark.asyncio
async def test_request_targets_the_store_and_echoes_the_id(
    make_session, make_envelope, base_url
) -> None:
    session = make_session([make_envelope({"result": {"id": "word"}})])
    client = LabbcatClient(base_url.rstrip("/"), session=session)

    result, errors, messages, call, item_id = await client.request(
        "getLayer", {"id": "word"}
    )

    assert result == {"id": "word"}
    assert errors is None and messages is None
    assert (call, item_id) == ("getLayer", "word")
    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == base_url + "api/store/getLayer"
    assert session.calls[0]["params"] == [("id", "word")]


@pytest.mark.asyncio
async def test_basic_auth_header_is_sent_with_a_username(
    make_session, make_envelope, base_url
) -> None:
    session = make_session([make_envelope("demo")])
    client = LabbcatClient(base_url, "demo", "secret", session=session)

    await client.request("getId")

    headers = session.calls[0]["headers"]
    assert headers["Authorization"] == aiohttp.BasicAuth("demo", "secret").encode()
    assert headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_no_auth_header_without_a_username(
    make_session, make_envelope, base_url
) -> None:
    session = make_session([make_envelope("demo")])
    client = LabbcatClient(base_url, session=session)

    await client.request("getId")

    assert "Authorization" not in session.calls[0]["headers"]


@pytest.mark.asyncio
async def test_http_error_becomes_a_single_error(
    make_session, make_response, base_url
) -> None:
    session = make_session(
        [make_response(status=401, reason="Unauthorized", body="Login required")]
    )
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getId")

    assert outcome.result is None
    assert outcome.errors == ["failed: 401 Unauthorized: Login required"]


@pytest.mark.asyncio
async def test_connection_failure_becomes_an_error(make_session, base_url) -> None:
    session = make_session([aiohttp.ClientConnectionError("refused")])
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getId")

    assert outcome.errors == ["failed: refused"]


@pytest.mark.asyncio
async def test_timeout_becomes_an_error(make_session, base_url) -> None:
    session = make_session([asyncio.TimeoutError()])
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getId")

    assert outcome.errors == ["failed: request timed out"]


@pytest.mark.asyncio
async def test_cancellation_becomes_a_cancelled_outcome(make_session, base_url) -> None:
    session = make_session([asyncio.CancelledError()])
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getLayer", {"id": "word"})

    assert outcome.errors == ["cancelled"]
    assert outcome.item_id == "word"


@pytest.mark.asyncio
async def test_json_body_and_method_are_passed(make_session, make_envelope, base_url) -> None:
    session = make_session([make_envelope({"corpus_id": 1})])
    client = LabbcatClient(base_url, session=session)

    await client.request("corpora", url=base_url + "api/admin/corpora", method="PUT", json_body={"a": 1})

    assert session.calls[0]["method"] == "PUT"
    assert session.calls[0]["json"] == {"a": 1}


@pytest.mark.asyncio
async def test_injected_session_is_not_closed(make_session, base_url) -> None:
    session = make_session([])
    async with LabbcatClient(base_url, session=session):
        pass

    assert session.closed is False


@pytest.mark.asyncio
async def test_fetch_binary_raises_on_http_error(make_session, make_response, base_url) -> None:
    session = make_session([make_response(status=404, reason="Not Found", body="")])
    client = LabbcatClient(base_url, session=session)

    with pytest.raises(TransportError) as excinfo:
        await client.fetch_binary(base_url + "soundfragment", {"id": "t"}, "audio/wav")

    assert excinfo.value.status == 404


@pytest.mark.asyncio
async def test_fetch_binary_reads_content_disposition(
    make_session, make_response, base_url
) -> None:
    session = make_session(
        [
            make_response(
                body=b"RIFF",
                headers={"Content-Disposition": 'attachment; filename="t__1.5-2.wav"'},
            )
        ]
    )
    client = LabbcatClient(base_url, session=session)

    response = await client.fetch_binary(base_url + "soundfragment", {"id": "t"}, "audio/wav")

    assert response.content == b"RIFF"
    assert response.filename == "t__1.5-2.wav"
    assert session.calls[0]["headers"]["Accept"] == "audio/wav"


def test_client_from_config() -> None:
    config = ClientConfig(base_url="http://localhost:8080/labbcat", username="u", password="p", verbose=True)

    client = LabbcatClient.from_config(config)

    assert client.base_url == "http://localhost:8080/labbcat/"
    assert client.store_url == "http://localhost:8080/labbcat/api/store/"
    assert client.username == "u"
    assert client.verbose is True


@pytest.mark.asyncio
async def test_body_that_is_not_utf8_becomes_a_parse_error(
    make_session, make_response, base_url
) -> None:
    session = make_session(
        [make_response(body=b"\xff\xfe not utf-8 \x80", headers={"Content-Type": "text/plain"})]
    )
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getId")

    assert outcome.result is None
    assert len(outcome.errors) == 1
    assert "not utf-8" in outcome.errors[0]


@pytest.mark.asyncio
async def test_http_error_with_undecodable_body(make_session, make_response, base_url) -> None:
    session = make_session(
        [make_response(status=500, reason="Internal Server Error", body=b"\xff\xfe oops \x80")]
    )
    client = LabbcatClient(base_url, session=session)

    outcome = await client.request("getId")

    assert outcome.errors[0].startswith("failed: 500 Internal Server Error:")
    assert "oops" in outcome.errors[0]


class _BlockingResponse:
    """A response whose body never arrives, so the request can be cancelled mid-flight."""

    def __init__(self) -> None:
        self.status = 200
        self.reason = "OK"
        self.headers: dict[str, str] = {}
        self.reading = asyncio.Event()

    async def text(self, encoding=None, errors="strict") -> str:
        self.reading.set()
        await asyncio.Event().wait()
        return ""

    async def __aenter__(self) -> "_BlockingResponse":
        return self

    async def __aexit__(self, _exc_type, _exc, _tb) -> None:
        return None


@pytest.mark.asyncio
async def test_cancelled_request_withdraws_the_cancellation(make_session, base_url) -> None:
    response = _BlockingResponse()
    client = LabbcatClient(base_url, session=make_session([response]))

    task = asyncio.create_task(client.request("getId"))
    await response.reading.wait()
    task.cancel()
    outcome = await task

    assert outcome.errors == ["cancelled"]
    assert task.cancelling() == 0


@pytest.mark.asyncio
async def test_diagnostics_go_to_the_logger_only_when_verbose(
    make_session, make_envelope, base_url, caplog: pytest.LogCaptureFixture
) -> None:
    logger = logging.getLogger("labbcat_cli.tests.diagnostics")
    quiet = LabbcatClient(base_url, session=make_session([make_envelope("demo")]), logger=logger)
    chatty = LabbcatClient(
        base_url, session=make_session([make_envelope("demo")]), logger=logger, verbose=True
    )

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        await quiet.request("getId")
        assert [r for r in caplog.records if r.name == logger.name] == []

        await chatty.request("getId")

    messages = [r.getMessage() for r in caplog.records if r.name == logger.name]
    assert any(m.startswith(f"GET {base_url}api/store/getId") for m in messages)
    assert all(r.levelno == logging.DEBUG for r in caplog.records if r.name == logger.name)
