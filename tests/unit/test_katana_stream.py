from __future__ import annotations

import json
from pathlib import Path

import pytest

from coffee_map.common.errors import CrawlSourceStartError, EndpointParseError, MalformedLineError, SourceIOError
from coffee_map.common.models import CafeDetails, CrawlRecord
from coffee_map.crawl import katana_stream
from coffee_map.crawl.cafe_details import CafeDetailsExtractor
from coffee_map.crawl.katana_stream import build_katana_args, iter_crawl_records, replay_file

CAFE_PAGE = """
<html><body>
  <h1 class="cafe-name">Five Elephant</h1>
  <div class="cafe-address">
      Reichenberger Str. 101, Berlin
  </div>
</body></html>
"""


def _line(endpoint=None, body=None) -> str:
    payload: dict = {"request": {"method": "GET"}}
    if endpoint is not None:
        payload["request"]["endpoint"] = endpoint
    if body is not None:
        payload["response"] = {"status_code": 200, "body": body}
    return json.dumps(payload)


def test_extractor_reads_name_and_trimmed_address():
    details = CafeDetailsExtractor().extract(CAFE_PAGE)
    assert details == CafeDetails(name="Five Elephant", address="Reichenberger Str. 101, Berlin")


def test_extractor_requires_both_fields():
    assert CafeDetailsExtractor().extract('<h1 class="cafe-name">Only a name</h1>') is None
    assert CafeDetailsExtractor().extract("<p>nothing here</p>") is None


def test_extractor_honours_configured_selectors():
    extractor = CafeDetailsExtractor.from_settings({"name_selector": "h2.title", "address_selector": "span.addr"})
    details = extractor.extract('<h2 class="title">Bonanza</h2><span class="addr">Oderberger Str. 35</span>')
    assert details == CafeDetails(name="Bonanza", address="Oderberger Str. 35")


def test_iter_crawl_records_yields_one_item_per_line_and_continues_after_errors():
    lines = [
        "not json",
        _line(endpoint="https://site.example/cafe/five-elephant", body=CAFE_PAGE),
        "",
        _line(),
        "[1, 2]",
        _line(endpoint="relative/path"),
        _line(endpoint="https://site.example/cafe/bonanza"),
    ]

    items = list(iter_crawl_records(lines))

    assert isinstance(items[0], MalformedLineError)
    assert items[1] == CrawlRecord(
        endpoint="https://site.example/cafe/five-elephant",
        details=CafeDetails(name="Five Elephant", address="Reichenberger Str. 101, Berlin"),
    )
    assert isinstance(items[2], EndpointParseError)
    assert isinstance(items[3], MalformedLineError)
    assert isinstance(items[4], EndpointParseError)
    assert items[5] == CrawlRecord(endpoint="https://site.example/cafe/bonanza", details=None)
    assert len(items) == 6


def test_iter_crawl_records_is_lazy():
    pulled: list[int] = []

    def lines():
        for i in range(3):
            pulled.append(i)
            yield _line(endpoint=f"https://site.example/cafe/c-{i}")

    records = iter_crawl_records(lines())
    first = next(records)

    assert first.endpoint == "https://site.example/cafe/c-0"
    assert pulled == [0]


def test_iter_crawl_records_reports_read_failure_and_stops():
    def lines():
        yield _line(endpoint="https://site.example/cafe/a")
        raise OSError("pipe closed")

    items = list(iter_crawl_records(lines()))

    assert isinstance(items[0], CrawlRecord)
    assert isinstance(items[1], SourceIOError)
    assert len(items) == 2


def test_replay_file_missing_is_start_error(tmp_path: Path):
    with pytest.raises(CrawlSourceStartError):
        replay_file(tmp_path / "missing.jsonl")


def test_build_katana_args():
    args = build_katana_args(
        {
            "seed_url": "https://europeancoffeetrip.com/cafe",
            "match_regex": ".*/cafe/.*",
            "search_depth": 3,
            "requests_per_second": 7,
        }
    )
    assert args == [
        "-u",
        "https://europeancoffeetrip.com/cafe",
        "-mr",
        ".*/cafe/.*",
        "-d",
        "3",
        "-rl",
        "7",
        "-silent",
        "-jsonl",
    ]


def test_katana_stream_missing_executable_is_start_error(monkeypatch):
    monkeypatch.setattr(katana_stream.shutil, "which", lambda _cmd: None)
    with pytest.raises(CrawlSourceStartError):
        katana_stream.KatanaStream({"command": "katana"})


class FakePopen:
    def __init__(self, lines: list[str], returncode: int):
        self.stdout = FakeStdout(lines)
        self._returncode = returncode

    def wait(self):
        return self._returncode

    def poll(self):
        return self._returncode

    def terminate(self):
        return None


class FakeStdout:
    def __init__(self, lines: list[str]):
        self._lines = [f"{line}\n" for line in lines]
        self.closed = False

    def __iter__(self):
        return iter(self._lines)

    def close(self):
        self.closed = True


def _settings() -> dict:
    return {
        "command": "katana",
        "seed_url": "https://europeancoffeetrip.com/cafe",
        "match_regex": ".*/cafe/.*",
        "search_depth": 1,
        "requests_per_second": 1,
    }


@pytest.mark.parametrize("returncode,expected", [(0, "completed"), (2, "crashed")])
def test_katana_stream_distinguishes_completed_and_crashed(monkeypatch, returncode, expected):
    lines = [_line(endpoint="https://site.example/cafe/a")]
    monkeypatch.setattr(katana_stream.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    monkeypatch.setattr(katana_stream.subprocess, "Popen", lambda *_a, **_k: FakePopen(lines, returncode))

    stream = katana_stream.KatanaStream(_settings())
    assert stream.exit_status == "running"
    assert list(stream) == lines
    assert stream.exit_status == expected
    assert stream.returncode == returncode


def test_replay_file_turns_undecodable_bytes_into_malformed_line(tmp_path: Path):
    path = tmp_path / "crawl.jsonl"
    path.write_bytes(
        _line(endpoint="https://site.example/cafe/a").encode("utf-8")
        + b"\n\xff\xfe not json\n"
        + _line(endpoint="https://site.example/cafe/b").encode("utf-8")
        + b"\n"
    )

    items = list(iter_crawl_records(replay_file(path)))

    assert [type(item) for item in items] == [CrawlRecord, MalformedLineError, CrawlRecord]
    assert items[2].endpoint == "https://site.example/cafe/b"


def test_iter_crawl_records_reports_undecodable_line():
    def lines():
        yield _line(endpoint="https://site.example/cafe/a")
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    items = list(iter_crawl_records(lines()))

    assert isinstance(items[0], CrawlRecord)
    assert isinstance(items[1], MalformedLineError)
    assert len(items) == 2


class RunningPopen(FakePopen):
    def __init__(self, lines: list[str]):
        super().__init__(lines, returncode=-15)
        self.terminated = False
        self.waited = False

    def poll(self):
        return self._returncode if self.terminated else None

    def terminate(self):
        self.terminated = True

    def wait(self):
        self.waited = True
        return self._returncode


def test_katana_stream_terminate_reaps_a_running_crawler(monkeypatch):
    lines = [_line(endpoint=f"https://site.example/cafe/c-{i}") for i in range(3)]
    process = RunningPopen(lines)
    monkeypatch.setattr(katana_stream.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    monkeypatch.setattr(katana_stream.subprocess, "Popen", lambda *_a, **_k: process)

    stream = katana_stream.KatanaStream(_settings())
    reader = iter(stream)
    next(reader)
    stream.terminate()
    reader.close()

    assert process.terminated
    assert process.waited
    assert process.stdout.closed
    assert stream.exit_status == "terminated"
    assert stream.returncode == -15


def test_katana_stream_without_stdout_pipe_is_start_error(monkeypatch):
    process = FakePopen([], returncode=0)
    process.stdout = None
    monkeypatch.setattr(katana_stream.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    monkeypatch.setattr(katana_stream.subprocess, "Popen", lambda *_a, **_k: process)

    stream = katana_stream.KatanaStream(_settings())

    with pytest.raises(CrawlSourceStartError):
        list(stream)
