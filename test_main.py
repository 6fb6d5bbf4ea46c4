#!/usr/bin/env python3
"""
Tests for the astra command-line entry point.
"""

import io
import json

import pytest
import yaml

import astra.main
from astra.client import StreamClient
from astra.main import TerminalView, build_parser, main
from astra.transcript import TranscriptUpdate


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("ASTRA_BACKEND_ENDPOINT", raising=False)
    monkeypatch.setattr(astra.main, "configure_logging", lambda *args: None)
    data = {
        "backend": {
            "endpoint": "https://backend.test/functions/v1/quick-api",
            "api_key_env": "ASTRA_MAIN_TEST_KEY",
            "http_client": {"connect_timeout": 1, "read_timeout": None, "write_timeout": 1},
        },
        "streaming": {"event_prefix": "data:", "done_sentinel": "[DONE]", "encoding": "utf-8"},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


@pytest.fixture
def scripted_client(monkeypatch, scripted_transport):
    def install(chunks, status_code=200):
        transports = []

        def factory(config, api_key, **kwargs):
            def make_transport():
                transport = scripted_transport(chunks, status_code=status_code)
                transports.append(transport)
                return transport

            return StreamClient(config, api_key, transport_factory=make_transport, **kwargs)

        monkeypatch.setattr(astra.main, "StreamClient", factory)
        return transports

    return install


def test_parser_defaults():
    args = build_parser().parse_args(["What is AF?"])
    assert args.query == "What is AF?"
    assert args.mode == "search"
    assert args.clinical is False
    assert args.config is None


def test_terminal_view_writes_deltas():
    out = io.StringIO()
    view = TerminalView(out)
    view(TranscriptUpdate("", True))
    view(TranscriptUpdate("Hel", True))
    view(TranscriptUpdate("lo", True))
    view(TranscriptUpdate("", False))
    assert out.getvalue() == "Hello"


def test_missing_api_key(config_file, monkeypatch, capsys):
    monkeypatch.delenv("ASTRA_MAIN_TEST_KEY", raising=False)
    assert main(["q", "--config", config_file]) == 2
    assert "ASTRA_MAIN_TEST_KEY" in capsys.readouterr().err


def test_streams_answer_and_citations(config_file, scripted_client, monkeypatch, capsys):
    monkeypatch.setenv("ASTRA_MAIN_TEST_KEY", "secret")
    body = "".join(
        f"data: {payload}\n"
        for payload in [
            json.dumps({"citations": ["https://pubmed.ncbi.nlm.nih.gov/1"]}),
            json.dumps({"choices": [{"delta": {"content": "Rate control "}}]}),
            json.dumps({"choices": [{"delta": {"content": "first [1]"}}]}),
            "[DONE]",
        ]
    ).encode()
    transports = scripted_client([body])

    assert main(["Atrial fibrillation?", "--clinical", "--config", config_file]) == 0

    out = capsys.readouterr().out
    assert out == (
        "Rate control first [1]\n"
        "[1] PubMed - https://pubmed.ncbi.nlm.nih.gov/1\n"
    )
    request = transports[0].requests[0]
    assert request.body["isClinical"] is True
    assert request.headers["Authorization"] == "Bearer secret"


def test_failure_exit_code(config_file, scripted_client, monkeypatch, capsys):
    monkeypatch.setenv("ASTRA_MAIN_TEST_KEY", "secret")
    scripted_client([b'{"error":{"message":"overloaded"}}'], status_code=503)

    assert main(["q", "--mode", "reason", "--config", config_file]) == 1
    assert "overloaded" in capsys.readouterr().err


def test_missing_config_file(tmp_path, capsys):
    missing = str(tmp_path / "nope.yaml")
    assert main(["q", "--config", missing]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_invalid_yaml(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("backend: [unclosed\n")
    assert main(["q", "--config", str(path)]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_value_error_while_streaming_is_not_a_config_error(
    config_file, monkeypatch, capsys
):
    monkeypatch.setenv("ASTRA_MAIN_TEST_KEY", "secret")

    def broken_client(config, api_key, **kwargs):
        raise ValueError("unexpected")

    monkeypatch.setattr(astra.main, "StreamClient", broken_client)

    with pytest.raises(ValueError, match="unexpected"):
        main(["q", "--config", config_file])
    assert "Configuration error" not in capsys.readouterr().err
