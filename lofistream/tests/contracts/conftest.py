"""
Shared pytest fixtures for lofistream contract tests.

Contract tests use test doubles (fakes, stubs, mocks) instead of real audio
devices, ffmpeg or the network. Persistence tests use pytest's tmp_path.
"""

import threading
from unittest.mock import Mock

import pytest

from lofistream.app.events import EventBus
from lofistream.app.messages import Message
from lofistream.app.player import Player
from lofistream.broadcast_core.fetch_pipeline import PrefetchPipeline
from lofistream.broadcast_core.prefetch_queue import PrefetchQueue
from lofistream.tests.contracts.test_doubles import (
    FakeEngine,
    RecordingBookmarks,
    ScriptedDownloader,
    ScriptedSource,
)

# Short delays keep retry paths fast without busy-looping
TEST_RETRY_DELAY = 0.01
TEST_TIMEOUT = 2.0


@pytest.fixture
def fake_engine():
    return FakeEngine(volume=0.5)


@pytest.fixture
def bookmarks():
    return RecordingBookmarks()


@pytest.fixture
def stop_event():
    return threading.Event()


@pytest.fixture
def make_player(fake_engine, bookmarks, stop_event):
    """
    Factory for a player wired to fakes.

    With `source`/`downloader` a real PrefetchPipeline feeds the queue;
    otherwise the pipeline is a Mock and tests push tracks themselves.
    The player is quit and joined at teardown.
    """
    players = []

    def _make(capacity=5, source=None, downloader=None, workers=1, volume_store=None, engine=None):
        prefetch_queue = PrefetchQueue(capacity)
        if source is not None:
            pipeline = PrefetchPipeline(
                source=source,
                fetcher=downloader or ScriptedDownloader(),
                queue=prefetch_queue,
                workers=workers,
                retry_delay=TEST_RETRY_DELAY,
                stop_event=stop_event,
            )
        else:
            pipeline = Mock()
        player = Player(
            engine=engine or fake_engine,
            prefetch_queue=prefetch_queue,
            pipeline=pipeline,
            bookmarks=bookmarks,
            volume_store=volume_store,
            bus=EventBus(),
            stop_event=stop_event,
            retry_delay=TEST_RETRY_DELAY,
            progress_interval=0.05,
        )
        player.set_progress_emit(False)
        players.append(player)
        return player

    yield _make

    for player in players:
        if player._thread is not None:
            player.send(Message.QUIT)
            player.wait(TEST_TIMEOUT)
    stop_event.set()


@pytest.fixture
def scripted_source():
    return ScriptedSource(["c1", "c2", "c2b", "c3"])


@pytest.fixture
def scripted_downloader():
    return ScriptedDownloader(failures={"c2": 1})


