from __future__ import annotations

import os
import tempfile

import aiohttp
import pytest

from labbcat_cli.api.store import LabbcatView
from labbcat_cli.media.downloader import split_matches
from labbcat_cli.utils.path import filename_from_content_disposition


@pytest.mark.asyncio
async def test_failed_fragment_keeps_its_position(make_session, make_response, base_url, tmp_path) -> None:
    session = make_session(
        [
            make_response(body=b"one"),
            make_response(status=404, reason="Not Found", body="no media"),
            make_response(body=b"three"),
        ]
    )
    store = LabbcatView(base_url, session=session)

    result, errors, messages, call, _ = await store.get_sound_fragments(
        ["a.trs", "b.trs", "c.trs"], [1.0, 2.0, 3.5], [2.0, 3.0, 4.25], directory=tmp_path
    )

    assert call == "getSoundFragments"
    assert len(result) == 3
    assert result[1] is None
    assert result[0] == os.path.join(tmp_path, "a.trs__1-2.wav")
    assert result[2] == os.path.join(tmp_path, "c.trs__3.5-4.25.wav")
    assert (tmp_path / "a.trs__1-2.wav").read_bytes() == b"one"
    assert len(errors) == 1
    assert errors[0].startswith("Could not get fragment 1:")
    assert messages is None


@pytest.mark.asyncio
async def test_mismatched_inputs_make_no_requests(make_session, base_url, tmp_path) -> None:
    session = make_session([])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(
        ["a", "b", "c"], [1, 2, 3], [2, 3], directory=tmp_path
    )

    assert outcome.result is None
    assert outcome.errors == [
        "transcriptIds (3), startOffsets (3), and endOffsets (2) must be arrays of equal size."
    ]
    assert session.calls == []


@pytest.mark.asyncio
async def test_server_file_name_is_used(make_session, make_response, base_url, tmp_path) -> None:
    session = make_session(
        [
            make_response(
                body=b"TextGrid",
                headers={"Content-Disposition": "attachment; filename=a__1.0-2.0.TextGrid"},
            )
        ]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_fragments(
        ["a.trs"], [1.0], [2.0], ["orthography", "phonemes"], "text/praat-textgrid",
        directory=tmp_path,
    )

    assert outcome.errors is None
    assert outcome.result == [os.path.join(tmp_path, "a__1.0-2.0.TextGrid")]
    call = session.calls[0]
    assert call["url"] == base_url + "convertfragment"
    assert call["headers"]["Accept"] == "text/praat-textgrid"
    assert call["params"] == [
        ("mimeType", "text/praat-textgrid"),
        ("layerId", "orthography"),
        ("layerId", "phonemes"),
        ("id", "a.trs"),
        ("start", "1.0"),
        ("end", "2.0"),
    ]


@pytest.mark.asyncio
async def test_sound_fragments_send_sample_rate(make_session, make_response, base_url, tmp_path) -> None:
    session = make_session([make_response(body=b"RIFF")])
    store = LabbcatView(base_url, session=session)

    await store.get_sound_fragments(["a.trs"], [0], [1], sample_rate=16000, directory=tmp_path)

    call = session.calls[0]
    assert call["url"] == base_url + "soundfragment"
    assert call["headers"]["Accept"] == "audio/wav"
    assert call["params"] == [("sampleRate", "16000"), ("id", "a.trs"), ("start", "0"), ("end", "1")]


@pytest.mark.asyncio
async def test_write_failure_is_reported_per_fragment(make_session, make_response, base_url, tmp_path) -> None:
    # a directory where the file should go makes the write fail
    (tmp_path / "b.trs__0-1.wav").mkdir()
    session = make_session([make_response(body=b"a"), make_response(body=b"b")])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(
        ["a.trs", "b.trs"], [0, 0], [1, 1], directory=tmp_path
    )

    assert outcome.result[0] is not None
    assert outcome.result[1] is None
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("Could not save fragment 1:")


@pytest.mark.asyncio
async def test_missing_directory_is_created(make_session, make_response, base_url, tmp_path) -> None:
    target = tmp_path / "fragments"
    session = make_session([make_response(body=b"a")])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(["a.trs"], [0], [1], directory=target)

    assert target.is_dir()
    assert outcome.result == [os.path.join(target, "a.trs__0-1.wav")]


@pytest.mark.asyncio
async def test_connection_failure_is_reported(make_session, base_url, tmp_path) -> None:
    session = make_session([aiohttp.ClientConnectionError("refused")])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(["a.trs"], [0], [1], directory=tmp_path)

    assert outcome.result == [None]
    assert outcome.errors == ["Could not get fragment 0: refused"]


@pytest.mark.asyncio
async def test_fragments_for_matches_use_utterance_bounds(
    make_session, make_response, base_url, tmp_path
) -> None:
    matches = [{"MatchId": "g_1;39.4-46.2", "Transcript": "a.trs", "Line": 39.4, "LineEnd": 46.2}]
    session = make_session([make_response(body=b"a")])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments_for_matches(matches, directory=tmp_path)

    assert outcome.result == [os.path.join(tmp_path, "a.trs__39.4-46.2.wav")]
    assert session.calls[0]["params"] == [("id", "a.trs"), ("start", "39.4"), ("end", "46.2")]


def test_split_matches() -> None:
    matches = [
        {"Transcript": "a", "Line": 1.0, "LineEnd": 2.0},
        {"Transcript": "b", "Line": 3.0, "LineEnd": 4.0},
    ]

    assert split_matches(matches) == (["a", "b"], [1.0, 3.0], [2.0, 4.0])


@pytest.mark.asyncio
async def test_undecodable_error_page_does_not_abort_the_batch(
    make_session, make_response, base_url, tmp_path
) -> None:
    session = make_session(
        [
            make_response(body=b"one"),
            make_response(
                status=500,
                reason="Internal Server Error",
                body=b"\xff\xfe not utf-8 \x80",
                headers={"Content-Type": "text/plain"},
            ),
            make_response(body=b"three"),
        ]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(
        ["a.trs", "b.trs", "c.trs"], [0, 0, 0], [1, 1, 1], directory=tmp_path
    )

    assert len(outcome.result) == 3
    assert outcome.result[1] is None
    assert outcome.result[0] is not None and outcome.result[2] is not None
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("Could not get fragment 1: 500 Internal Server Error")


@pytest.mark.asyncio
async def test_no_directory_means_the_temporary_directory(
    make_session, make_response, base_url, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    session = make_session([make_response(body=b"RIFF")])
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(["a.trs"], [0], [1])

    assert outcome.result == [os.path.join(tmp_path, "a.trs__0-1.wav")]
    assert (tmp_path / "a.trs__0-1.wav").read_bytes() == b"RIFF"


@pytest.mark.asyncio
async def test_extended_file_name_is_percent_decoded(
    make_session, make_response, base_url, tmp_path
) -> None:
    session = make_session(
        [
            make_response(
                body=b"RIFF",
                headers={"Content-Disposition": "attachment; filename*=UTF-8''a%20b.wav"},
            )
        ]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.get_sound_fragments(["a.trs"], [0], [1], directory=tmp_path)

    assert outcome.result == [os.path.join(tmp_path, "a b.wav")]


def test_extended_file_name_takes_precedence() -> None:
    header = "attachment; filename=\"fallback.wav\"; filename*=UTF-8''caf%C3%A9.wav"

    assert filename_from_content_disposition(header) == "café.wav"
    assert filename_from_content_disposition('attachment; filename="t__1-2.wav"') == "t__1-2.wav"
    assert filename_from_content_disposition("inline") is None
