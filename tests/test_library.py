from __future__ import annotations

import pytest

from themesong_cli.exceptions import LibraryError
from themesong_cli.storage.library import FilesystemLibrary, has_theme, parse_nfo

NFO = """<?xml version="1.0" encoding="utf-8" standalone="yes"?>
<tvshow>
  <title>The Office (US)</title>
  <uniqueid type="imdb">tt0386676</uniqueid>
  <uniqueid type="tvdb" default="true">73244</uniqueid>
</tvshow>
"""


@pytest.fixture
def library_root(tmp_path):
    root = tmp_path / "tv"
    (root / "Friends (1994) [tvdbid-79168]").mkdir(parents=True)
    office = root / "The Office"
    office.mkdir()
    (office / "tvshow.nfo").write_text(NFO, encoding="utf-8")
    (root / "Untagged Show").mkdir()
    (root / ".trash").mkdir()
    return root


def test_candidates_come_from_folder_tags_and_nfo(library_root) -> None:
    candidates = FilesystemLibrary([library_root]).list_candidates()

    assert [(c.identity, c.name) for c in candidates] == [
        ("tvdb:79168", "Friends (1994)"),
        ("tvdb:73244", "The Office (US)"),
    ]
    assert candidates[0].library_dir == library_root / "Friends (1994) [tvdbid-79168]"
    assert not any(c.has_artifact for c in candidates)


def test_parse_nfo_prefers_tvdbid_element(tmp_path) -> None:
    nfo = tmp_path / "tvshow.nfo"
    nfo.write_text(
        "<tvshow><title>Lost</title><tvdbid>73739</tvdbid></tvshow>", encoding="utf-8"
    )

    assert parse_nfo(nfo) == ("Lost", "73739")
    assert parse_nfo(tmp_path / "missing.nfo") == (None, None)


def test_has_theme_accepts_theme_file_or_theme_music_folder(tmp_path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    assert not has_theme(plain)

    (plain / "theme.mp3").write_bytes(b"x")
    assert has_theme(plain)

    music = tmp_path / "music" / "theme-music"
    music.mkdir(parents=True)
    (music / "notes.txt").write_text("not audio")
    assert not has_theme(tmp_path / "music")
    (music / "opening.flac").write_bytes(b"x")
    assert has_theme(tmp_path / "music")


def test_has_artifact_reflects_current_disk_state(library_root) -> None:
    library = FilesystemLibrary([library_root])
    friends = library.list_candidates()[0]

    (friends.library_dir / "theme.mp3").write_bytes(b"x")

    assert friends.has_artifact is False
    assert library.has_artifact(friends) is True


def test_find_by_identity_id_or_name(library_root) -> None:
    library = FilesystemLibrary([library_root])

    assert library.find("tvdb:73244").name == "The Office (US)"
    assert library.find("79168").name == "Friends (1994)"
    assert library.find("the office (us)").identity == "tvdb:73244"
    with pytest.raises(LibraryError):
        library.find("Seinfeld")


def test_missing_library_paths_raise(tmp_path) -> None:
    with pytest.raises(LibraryError):
        FilesystemLibrary([]).list_candidates()
    with pytest.raises(LibraryError):
        FilesystemLibrary([tmp_path / "nope"]).list_candidates()
