import json
import os

import pytest

from fancontrol.update import (
    LISTING_HEADERS,
    FileState,
    RemoteFile,
    UpdateError,
    determine_states,
    download_files,
    file_matches_sha,
    git_blob_sha1,
    parse_directory_listing,
    summarize,
    update_configs,
    update_model_support,
)


def make_fetcher(responses, calls=None):
    def fetcher(url, headers=None):
        if calls is not None:
            calls.append((url, headers))
        if url not in responses:
            raise UpdateError(f"Download failed: {url}")
        return responses[url]

    return fetcher


def test_git_blob_sha1_empty():
    assert git_blob_sha1(b"") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


def test_git_blob_sha1_hello():
    assert git_blob_sha1(b"hello\n") == "ce013625030ba8dba906f756967f9e9ca394464a"


def test_file_matches_sha_round_trip(tmp_path):
    path = tmp_path / "a.json"
    path.write_bytes(b'{"x": 1}')
    assert file_matches_sha(str(path), git_blob_sha1(b'{"x": 1}')) is True
    assert file_matches_sha(str(path), git_blob_sha1(b"other")) is False


def test_file_matches_sha_missing_file(tmp_path):
    assert file_matches_sha(str(tmp_path / "missing"), git_blob_sha1(b"")) is False


def test_determine_states(tmp_path):
    mutable = tmp_path / "mutable"
    static = tmp_path / "static"
    mutable.mkdir()
    static.mkdir()
    (mutable / "same.json").write_bytes(b"same")
    (static / "same.json").write_bytes(b"different")
    (static / "changed.json").write_bytes(b"old")

    files = [
        RemoteFile("same.json", git_blob_sha1(b"same"), "u1"),
        RemoteFile("changed.json", git_blob_sha1(b"new"), "u2"),
        RemoteFile("new.json", git_blob_sha1(b"x"), "u3"),
    ]
    result = determine_states(files, str(mutable), str(static))
    assert [f.state for f in result] == [
        FileState.UP_TO_DATE,
        FileState.CHANGED,
        FileState.NEW,
    ]


def test_summarize_counts():
    files = [
        RemoteFile("a", "", "u", FileState.NEW),
        RemoteFile("b", "", "u", FileState.NEW),
        RemoteFile("c", "", "u", FileState.CHANGED),
        RemoteFile("d", "", "u", FileState.UP_TO_DATE),
    ]
    assert summarize(files) == (2, 1)


def test_parse_directory_listing_skips_bad_entries():
    listing = [
        {"name": "a.json", "sha": "abc", "download_url": "http://localhost/a.json"},
        "not an object",
        {"sha": "def", "download_url": "http://localhost/nameless"},
        {"name": "nourl.json", "sha": "x"},
        {"name": "nosha.json", "download_url": "http://localhost/nosha.json"},
        {"name": 5, "download_url": "http://localhost/five"},
    ]
    files = parse_directory_listing(json.dumps(listing))
    assert [f.name for f in files] == ["a.json", "nosha.json"]
    assert files[0].sha == "abc"
    assert files[0].download_url == "http://localhost/a.json"
    assert files[1].sha == ""


def test_parse_directory_listing_not_array():
    with pytest.raises(UpdateError):
        parse_directory_listing(b'{"name": "a"}')


def test_parse_directory_listing_invalid_json():
    with pytest.raises(UpdateError):
        parse_directory_listing(b"[unterminated")


def test_download_files_skips_up_to_date(tmp_path):
    calls = []
    fetcher = make_fetcher(
        {"http://localhost/a": b"A", "http://localhost/b": b"B"}, calls
    )
    files = [
        RemoteFile("a.json", "", "http://localhost/a", FileState.NEW),
        RemoteFile("b.json", "", "http://localhost/b", FileState.CHANGED),
        RemoteFile("c.json", "", "http://localhost/c", FileState.UP_TO_DATE),
    ]
    download_files(files, str(tmp_path), parallel=2, quiet=True, fetcher=fetcher)
    assert (tmp_path / "a.json").read_bytes() == b"A"
    assert (tmp_path / "b.json").read_bytes() == b"B"
    assert not (tmp_path / "c.json").exists()
    assert sorted(url for url, _ in calls) == ["http://localhost/a", "http://localhost/b"]


def test_download_files_reports_failure_but_continues(tmp_path):
    fetcher = make_fetcher({"http://localhost/good": b"G"})
    files = [
        RemoteFile("bad.json", "", "http://localhost/bad", FileState.NEW),
        RemoteFile("good.json", "", "http://localhost/good", FileState.NEW),
    ]
    with pytest.raises(UpdateError):
        download_files(files, str(tmp_path), parallel=1, quiet=False, fetcher=fetcher)
    assert (tmp_path / "good.json").read_bytes() == b"G"
    assert not (tmp_path / "bad.json").exists()


def test_download_files_with_zero_parallel_downloads_nothing(tmp_path):
    fetcher = make_fetcher({"http://localhost/a": b"A"})
    files = [RemoteFile("a.json", "", "http://localhost/a", FileState.NEW)]
    download_files(files, str(tmp_path), parallel=0, quiet=True, fetcher=fetcher)
    assert os.listdir(tmp_path) == []


def test_update_model_support_writes_target(tmp_path):
    target = tmp_path / "model_support.json"
    fetcher = make_fetcher({"http://localhost/support": b'{"M": "C"}'})
    update_model_support("http://localhost/support", str(target), fetcher)
    assert target.read_bytes() == b'{"M": "C"}'


def test_update_model_support_download_failure(tmp_path):
    with pytest.raises(UpdateError):
        update_model_support(
            "http://localhost/missing", str(tmp_path / "x.json"), make_fetcher({})
        )


def test_update_model_support_write_failure(tmp_path):
    fetcher = make_fetcher({"http://localhost/support": b"{}"})
    with pytest.raises(UpdateError):
        update_model_support(
            "http://localhost/support", str(tmp_path / "no" / "dir.json"), fetcher
        )


def test_update_configs_end_to_end(tmp_path):
    mutable = tmp_path / "mutable"
    static = tmp_path / "static"
    mutable.mkdir()
    static.mkdir()
    (static / "old.json").write_bytes(b"OLD")

    listing = [
        {"name": "old.json", "sha": git_blob_sha1(b"OLD"), "download_url": "http://localhost/old"},
        {"name": "fresh.json", "sha": git_blob_sha1(b"FRESH"), "download_url": "http://localhost/fresh"},
    ]
    calls = []
    fetcher = make_fetcher(
        {
            "http://localhost/list": json.dumps(listing).encode(),
            "http://localhost/fresh": b"FRESH",
        },
        calls,
    )
    files = update_configs(
        "http://localhost/list", str(mutable), str(static), 4, True, fetcher
    )
    assert [(f.name, f.state) for f in files] == [
        ("old.json", FileState.UP_TO_DATE),
        ("fresh.json", FileState.NEW),
    ]
    assert (mutable / "fresh.json").read_bytes() == b"FRESH"
    assert not (mutable / "old.json").exists()
    assert calls[0] == ("http://localhost/list", LISTING_HEADERS)


def test_update_configs_listing_failure(tmp_path):
    with pytest.raises(UpdateError):
        update_configs(
            "http://localhost/list", str(tmp_path), str(tmp_path), fetcher=make_fetcher({})
        )