from __future__ import annotations

import asyncio
from pathlib import Path

from conftest import FakeDownloader, FakeFfmpeg, FakeProvider
from themesong_cli.core.theme_manager import ThemeSongManager
from themesong_cli.core.theme_processor import ThemeProcessor
from themesong_cli.media.normalizer import NormalizationPipeline
from themesong_cli.media.placer import FilePlacer
from themesong_cli.models.candidate import Candidate, ThemeOutcome
from themesong_cli.providers.base import ProviderDescriptor
from themesong_cli.providers.chain import ProviderChain


class FakeLibrary:
    def __init__(self, candidates):
        self.candidates = list(candidates)

    def list_candidates(self):
        return list(self.candidates)

    def has_artifact(self, candidate):
        return candidate.theme_path.is_file()


class ExplodingDownloader(FakeDownloader):
    """Fails hard for one URL and behaves normally for the rest."""

    def __init__(self, bad_url: str):
        super().__init__()
        self.bad_url = bad_url

    async def fetch(self, url, destination_path, cancel=None):
        if url == self.bad_url:
            raise RuntimeError("connection reset by peer")
        return await super().fetch(url, destination_path, cancel)


class CancellingProvider(FakeProvider):
    """Requests cancellation while the first series is being processed."""

    def __init__(self, cancel: asyncio.Event):
        super().__init__("B", url="https://x/a.mp3")
        self.cancel = cancel

    async def resolve(self, candidate):
        self.cancel.set()
        return await super().resolve(candidate)


def _series(tmp_path: Path, identity: str, name: str, folder: str) -> Candidate:
    library_dir = tmp_path / "tv" / folder
    library_dir.mkdir(parents=True, exist_ok=True)
    return Candidate(identity=identity, name=name, library_dir=library_dir)


def _manager(config, candidates, providers, downloader=None, ffmpeg=None):
    chain = ProviderChain(
        ProviderDescriptor(p, priority=i, enabled=True) for i, p in enumerate(providers)
    )
    processor = ThemeProcessor(
        config,
        chain,
        downloader or FakeDownloader(),
        NormalizationPipeline(runner=ffmpeg or FakeFfmpeg()),
        FilePlacer(),
    )
    return ThemeSongManager(config, FakeLibrary(candidates), processor)


def _staging_files(config):
    if not config.staging_dir.exists():
        return []
    return list(config.staging_dir.iterdir())


def test_single_series_is_downloaded_normalized_and_placed(tmp_path, make_config) -> None:
    config = make_config(normalize_audio_volume=-18)
    show = _series(tmp_path, "tvdb:123", "Show: A/B", "Show A-B")
    provider = FakeProvider("B", url="https://x/a.mp3")
    downloader = FakeDownloader()
    ffmpeg = FakeFfmpeg(max_volume=-12.0)
    manager = _manager(config, [show], [provider], downloader, ffmpeg)

    stats = asyncio.run(manager.run_all())

    assert stats.processed == 1
    assert stats.succeeded == 1
    assert stats.normalized == 1
    assert (show.library_dir / "theme.mp3").read_bytes() == b"normalized audio"
    url, destination = downloader.requests[0]
    assert url == "https://x/a.mp3"
    assert Path(destination).name == "Show_ A_B_tvdb_123.mp3"
    transcode = ffmpeg.calls[-1]
    assert Path(transcode[-1]).name == "normalized_Show_ A_B_tvdb_123.mp3"
    assert _staging_files(config) == []


def test_already_normalized_download_is_committed_as_is(tmp_path, make_config) -> None:
    config = make_config(normalize_audio_volume=-18)
    show = _series(tmp_path, "tvdb:123", "Show: A/B", "Show A-B")
    ffmpeg = FakeFfmpeg(max_volume=-18.2)
    manager = _manager(config, [show], [FakeProvider("B", url="https://x/a.mp3")], ffmpeg=ffmpeg)

    stats = asyncio.run(manager.run_all())

    assert stats.succeeded == 1
    assert stats.normalization_skipped == 1
    assert (show.library_dir / "theme.mp3").read_bytes() == b"ID3 downloaded audio"
    assert ffmpeg.calls_with("-y") == []


def test_series_with_theme_is_skipped_without_contacting_providers(
    tmp_path, make_config
) -> None:
    config = make_config()
    show = _series(tmp_path, "tvdb:1", "Has Theme", "Has Theme")
    (show.library_dir / "theme.mp3").write_bytes(b"existing")
    provider = FakeProvider("A", url="https://a/theme.mp3")
    manager = _manager(config, [show], [provider])

    stats = asyncio.run(manager.run_all())
    single = asyncio.run(manager.run_one(Candidate("tvdb:1", "Has Theme", show.library_dir, True)))

    assert stats.total_series == 1
    assert stats.with_theme == 1
    assert stats.processed == 0
    assert single is False
    assert provider.calls == []
    assert (show.library_dir / "theme.mp3").read_bytes() == b"existing"


def test_force_replaces_theme_and_keeps_backup(tmp_path, make_config) -> None:
    config = make_config(normalize_audio=False)
    show = _series(tmp_path, "tvdb:1", "Has Theme", "Has Theme")
    (show.library_dir / "theme.mp3").write_bytes(b"existing")
    manager = _manager(config, [show], [FakeProvider("A", url="https://a/theme.mp3")])

    stats = asyncio.run(manager.run_all(force=True))

    assert stats.succeeded == 1
    assert stats.backups_created == 1
    assert (show.library_dir / "theme.mp3").read_bytes() == b"ID3 downloaded audio"
    backups = [p for p in show.library_dir.iterdir() if ".backup." in p.name]
    assert len(backups) == 1
    assert backups[0].read_bytes() == b"existing"


def test_cancel_before_first_series_processes_nothing(tmp_path, make_config) -> None:
    config = make_config()
    shows = [_series(tmp_path, f"tvdb:{i}", f"Show {i}", f"Show {i}") for i in range(3)]
    provider = FakeProvider("A", url="https://a/theme.mp3")
    manager = _manager(config, shows, [provider])

    async def _run():
        cancel = asyncio.Event()
        cancel.set()
        return await manager.run_all(cancel=cancel)

    stats = asyncio.run(_run())

    assert stats.processed == 0
    assert stats.cancelled
    assert provider.calls == []


def test_cancel_during_run_finishes_current_series_only(tmp_path, make_config) -> None:
    config = make_config(normalize_audio=False)
    shows = [_series(tmp_path, f"tvdb:{i}", f"Show {i}", f"Show {i}") for i in range(3)]

    async def _run():
        cancel = asyncio.Event()
        provider = CancellingProvider(cancel)
        manager = _manager(config, shows, [provider])
        return await manager.run_all(cancel=cancel), provider

    stats, provider = asyncio.run(_run())

    # The chain was already consulted when cancellation arrived, so the
    # first series completes; no later series is started.
    assert provider.calls == ["tvdb:0"]
    assert stats.processed == 1
    assert stats.cancelled
    assert (shows[0].library_dir / "theme.mp3").exists()
    assert not (shows[1].library_dir / "theme.mp3").exists()


def test_failure_for_one_series_does_not_stop_the_batch(tmp_path, make_config) -> None:
    config = make_config(normalize_audio=False)
    broken = _series(tmp_path, "tvdb:1", "Broken", "Broken")
    fine = _series(tmp_path, "tvdb:2", "Fine", "Fine")

    class ByIdentity(FakeProvider):
        async def resolve(self, candidate):
            await super().resolve(candidate)
            return f"https://a/{candidate.identity}.mp3"

    manager = _manager(
        config,
        [broken, fine],
        [ByIdentity("A")],
        downloader=ExplodingDownloader("https://a/tvdb:1.mp3"),
    )

    stats = asyncio.run(manager.run_all())

    assert stats.processed == 2
    assert stats.failed == 1
    assert stats.succeeded == 1
    assert not (broken.library_dir / "theme.mp3").exists()
    assert (fine.library_dir / "theme.mp3").exists()
    assert _staging_files(config) == []


def test_not_found_and_download_failure_are_counted(tmp_path, make_config) -> None:
    config = make_config()
    show = _series(tmp_path, "tvdb:5", "Obscure", "Obscure")

    not_found = asyncio.run(
        _manager(config, [show], [FakeProvider("A")]).process_one(show)
    )
    failed = asyncio.run(
        _manager(
            config,
            [show],
            [FakeProvider("A", url="https://a/x.mp3")],
            downloader=FakeDownloader(succeed=False),
        ).process_one(show)
    )

    assert not_found is ThemeOutcome.NOT_FOUND
    assert failed is ThemeOutcome.DOWNLOAD_FAILED
    assert not (show.library_dir / "theme.mp3").exists()


def test_transcode_failure_cleans_staging_and_keeps_library_untouched(
    tmp_path, make_config
) -> None:
    config = make_config()
    show = _series(tmp_path, "tvdb:123", "Show: A/B", "Show A-B")
    manager = _manager(
        config,
        [show],
        [FakeProvider("A", url="https://x/a.mp3")],
        ffmpeg=FakeFfmpeg(max_volume=-3.0, fail_transcode=True),
    )

    outcome = asyncio.run(manager.process_one(show))

    assert outcome is ThemeOutcome.NORMALIZATION_FAILED
    assert not (show.library_dir / "theme.mp3").exists()
    assert _staging_files(config) == []


def test_placement_failure_cleans_staging_and_batch_continues(tmp_path, make_config) -> None:
    config = make_config(normalize_audio_volume=-18)
    # A plain file where the series folder should be makes placement fail.
    blocked_dir = tmp_path / "tv" / "Blocked"
    blocked_dir.parent.mkdir(parents=True, exist_ok=True)
    blocked_dir.write_bytes(b"not a folder")
    blocked = Candidate(identity="tvdb:1", name="Blocked", library_dir=blocked_dir)
    fine = _series(tmp_path, "tvdb:2", "Fine", "Fine")
    ffmpeg = FakeFfmpeg(max_volume=-12.0)
    manager = _manager(
        config,
        [blocked, fine],
        [FakeProvider("A", url="https://x/a.mp3")],
        ffmpeg=ffmpeg,
    )

    async def _run():
        outcome = await manager.process_one(blocked)
        staged_after_failure = _staging_files(config)
        return outcome, staged_after_failure, await manager.run_all()

    outcome, staged_after_failure, stats = asyncio.run(_run())

    assert outcome is ThemeOutcome.PLACEMENT_FAILED
    # Normalization ran, so both the raw download and its normalized copy existed.
    assert len(ffmpeg.calls_with("-y")) >= 1
    assert staged_after_failure == []
    assert blocked_dir.read_bytes() == b"not a folder"
    assert stats.processed == 2
    assert stats.failed == 1
    assert stats.succeeded == 1
    assert (fine.library_dir / "theme.mp3").read_bytes() == b"normalized audio"
    assert _staging_files(config) == []
