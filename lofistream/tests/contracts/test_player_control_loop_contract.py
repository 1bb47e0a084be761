"""
Contract tests for the Player control loop.

Covers:
- Advancing on INIT / NEXT / engine exhaustion, in dequeue order
- No double-advance from a stale exhaustion signal
- NEXT is a no-op while loading
- Volume clamping and the single VOLUME_CHANGED per change
- Bookmark toggling, reset on advance, and failure handling
- Engine rejection leading to TRY_AGAIN
- QUIT shutdown (volume persisted, engine closed)
"""

import logging
import time

import pytest

from lofistream.app.events import UIEvent
from lofistream.app.messages import ChangeVolume, Message
from lofistream.state.playback_info import PlaybackState
from lofistream.state.volume_store import PersistentVolume
from lofistream.tests.contracts.conftest import TEST_TIMEOUT
from lofistream.tests.contracts.test_doubles import (
    RecordingBookmarks,
    ScriptedDownloader,
    ScriptedSource,
    make_ready_track,
    wait_for,
)


def _events(subscription, exclude=(UIEvent.PROGRESS_UPDATE,)):
    return [e for e in subscription.drain() if e not in exclude]


def _display(name: str) -> str:
    return make_ready_track(name).info.display_name


def _start_with(make_player, *names, **kwargs):
    player = make_player(**kwargs)
    for name in names:
        player.queue.push(make_ready_track(name))
    subscription = player.subscribe()
    player.start()
    return player, subscription


class TestAdvance:
    """INIT, NEXT and exhaustion install tracks from the prefetch queue."""

    def test_init_installs_first_queued_track(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.INIT)

        assert wait_for(lambda: player.current_exists())
        assert fake_engine.labels == [_display("alpha")]
        assert player.slot.load().display_name == _display("alpha")
        assert len(player.queue) == 1

    def test_engine_is_stopped_before_enqueue(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha")
        player.send(Message.INIT)

        assert wait_for(lambda: player.current_exists())
        assert fake_engine.calls.index("stop") < fake_engine.calls.index(f"enqueue:{_display('alpha')}")

    def test_advance_emits_track_changed_before_and_after(self, make_player):
        player, subscription = _start_with(make_player, "alpha")
        player.send(Message.INIT)

        assert wait_for(lambda: subscription._queue.qsize() >= 2)
        assert _events(subscription) == [UIEvent.TRACK_CHANGED, UIEvent.TRACK_CHANGED]

    def test_exhaustion_advances_to_next_track(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.INIT)
        assert wait_for(lambda: len(fake_engine.labels) == 1)

        fake_engine.finish_track()

        assert wait_for(lambda: len(fake_engine.labels) == 2)
        assert fake_engine.labels == [_display("alpha"), _display("beta")]

    def test_next_skips_current_track(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        player.send(Message.NEXT)

        assert wait_for(lambda: len(fake_engine.labels) == 2)
        assert player.slot.load().display_name == _display("beta")

    def test_next_without_current_track_is_noop(self, make_player, fake_engine):
        player, subscription = _start_with(make_player)
        player.send(Message.NEXT)
        time.sleep(0.1)
        player.queue.push(make_ready_track("alpha"))
        time.sleep(0.2)

        assert fake_engine.labels == []
        assert _events(subscription) == []
        assert len(player.queue) == 1

    def test_slot_is_empty_while_waiting_for_a_track(self, make_player):
        player, _ = _start_with(make_player, "alpha")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        player.send(Message.NEXT)

        assert wait_for(lambda: not player.current_exists())
        assert player.get_playback_info().state is PlaybackState.LOADING

        player.queue.push(make_ready_track("beta"))
        assert wait_for(lambda: player.current_exists())
        assert player.get_playback_info().track.display_name == _display("beta")


class TestNoDoubleAdvance:
    """A stale exhaustion signal never skips a track."""

    def test_exhaustion_after_next_is_ignored(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())
        time.sleep(0.05)

        # NEXT disarms; the old track then "ends" while the advance waits
        player.send(Message.NEXT)
        assert wait_for(lambda: not player.current_exists())
        fake_engine.finish_track()
        time.sleep(0.2)

        player.queue.push(make_ready_track("beta"))
        player.queue.push(make_ready_track("gamma"))

        assert wait_for(lambda: len(fake_engine.labels) == 2)
        time.sleep(0.3)
        assert fake_engine.labels == [_display("alpha"), _display("beta")]
        assert len(player.queue) == 1

    def test_second_next_before_advance_runs_is_ignored(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta", "gamma")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        # Holding the lock keeps the advance task from reaching the queue
        with player._advance_lock:
            player.send(Message.NEXT)
            assert wait_for(lambda: not player.current_exists())
            player.send(Message.NEXT)
            time.sleep(0.1)

        assert wait_for(lambda: len(fake_engine.labels) == 2)
        time.sleep(0.2)
        assert fake_engine.labels == [_display("alpha"), _display("beta")]
        assert len(player.queue) == 1

    def test_next_right_after_exhaustion_is_ignored(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta", "gamma")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())
        time.sleep(0.05)

        with player._advance_lock:
            fake_engine.finish_track()
            assert wait_for(lambda: not player.current_exists())
            player.send(Message.NEXT)
            time.sleep(0.1)

        assert wait_for(lambda: len(fake_engine.labels) == 2)
        time.sleep(0.2)
        assert fake_engine.labels == [_display("alpha"), _display("beta")]
        assert len(player.queue) == 1

    def test_exhaustion_is_not_honoured_before_new_song(self, make_player, fake_engine):
        # Engine idle at startup must not trigger an advance on its own
        player, _ = _start_with(make_player, "alpha")
        time.sleep(0.3)

        assert fake_engine.labels == []
        assert len(player.queue) == 1


class TestPlayPause:
    """PLAY, PAUSE and PLAY_PAUSE drive the engine and notify observers."""

    def test_play_pause_toggles(self, make_player, fake_engine):
        player, subscription = _start_with(make_player)

        player.send(Message.PLAY_PAUSE)
        assert wait_for(lambda: fake_engine.is_paused())
        player.send(Message.PLAY_PAUSE)
        assert wait_for(lambda: not fake_engine.is_paused())

        assert wait_for(lambda: subscription._queue.qsize() >= 2)
        assert _events(subscription) == [UIEvent.PLAYBACK_STATE_CHANGED] * 2

    def test_pause_and_play(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        player.send(Message.PAUSE)
        assert wait_for(lambda: player.get_playback_info().state is PlaybackState.PAUSED)
        player.send(Message.PLAY)
        assert wait_for(lambda: player.get_playback_info().state is PlaybackState.PLAYING)


class TestVolume:
    """ChangeVolume clamps to [0, 1] and publishes exactly one event."""

    def test_volume_clamped_at_maximum(self, make_player, fake_engine):
        fake_engine.set_volume(0.9)
        player, subscription = _start_with(make_player)

        player.send(ChangeVolume(0.3))

        assert wait_for(lambda: fake_engine.volume() == 1.0)
        time.sleep(0.1)
        assert _events(subscription) == [UIEvent.VOLUME_CHANGED]

    def test_volume_clamped_at_minimum(self, make_player, fake_engine):
        fake_engine.set_volume(0.05)
        player, _ = _start_with(make_player)

        player.send(ChangeVolume(-0.1))

        assert wait_for(lambda: fake_engine.volume() == 0.0)

    def test_volume_change_triggers_flash(self, make_player, fake_engine):
        player, _ = _start_with(make_player)

        player.send(ChangeVolume(0.1))

        assert wait_for(lambda: fake_engine.volume() == pytest.approx(0.6))
        assert wait_for(lambda: "volume" in (player.progress.current_line or ""))
        assert "60%" in player.progress.current_line


class TestBookmark:
    """BOOKMARK toggles the record of the current track."""

    def test_bookmark_without_track_emits_nothing(self, make_player, bookmarks):
        player, subscription = _start_with(make_player)

        player.send(Message.BOOKMARK)
        player.send(ChangeVolume(0.0))

        assert wait_for(lambda: subscription._queue.qsize() >= 1)
        assert _events(subscription) == [UIEvent.VOLUME_CHANGED]
        assert bookmarks.calls == []
        assert not player.is_bookmarked()

    def test_bookmark_toggles_flag(self, make_player, bookmarks):
        player, subscription = _start_with(make_player, "alpha")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())
        subscription.drain()

        player.send(Message.BOOKMARK)
        assert wait_for(lambda: player.is_bookmarked())
        player.send(Message.BOOKMARK)
        assert wait_for(lambda: not player.is_bookmarked())

        track = player.slot.load()
        assert bookmarks.calls == [(track.full_path, None), (track.full_path, None)]
        assert wait_for(lambda: subscription._queue.qsize() >= 2)
        assert UIEvent.BOOKMARK_CHANGED in _events(subscription)

    def test_custom_name_is_recorded(self, make_player, bookmarks):
        player = make_player()
        player.queue.push(make_ready_track("alpha", custom_name="Rainy Window"))
        player.start()
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        player.send(Message.BOOKMARK)

        assert wait_for(lambda: player.is_bookmarked())
        assert bookmarks.calls == [("https://lofi.example/alpha.mp3", "Rainy Window")]

    def test_bookmark_flag_reset_on_advance(self, make_player):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())
        player.send(Message.BOOKMARK)
        assert wait_for(lambda: player.is_bookmarked())

        player.send(Message.NEXT)

        assert wait_for(lambda: not player.is_bookmarked())
        assert wait_for(lambda: player.current_exists() and player.slot.load().display_name == _display("beta"))
        assert not player.get_playback_info().is_bookmarked

    def test_bookmark_while_advance_pending_is_noop(self, make_player, bookmarks):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())

        with player._advance_lock:
            player.send(Message.NEXT)
            assert wait_for(lambda: not player.current_exists())
            player.send(Message.BOOKMARK)
            time.sleep(0.1)

        assert wait_for(lambda: player.current_exists())
        assert player.slot.load().display_name == _display("beta")
        assert bookmarks.calls == []
        assert not player.is_bookmarked()

    def test_bookmark_failure_is_logged_and_loop_continues(self, make_player, fake_engine, caplog):
        player = make_player()
        player.bookmarks = RecordingBookmarks(fail=True)
        player.queue.push(make_ready_track("alpha"))
        subscription = player.subscribe()
        player.start()
        player.send(Message.INIT)
        assert wait_for(lambda: player.current_exists())
        subscription.drain()

        with caplog.at_level(logging.ERROR, logger="lofistream.app.player"):
            player.send(Message.BOOKMARK)
            player.send(ChangeVolume(0.1))
            assert wait_for(lambda: fake_engine.volume() == pytest.approx(0.6))

        assert not player.is_bookmarked()
        assert UIEvent.BOOKMARK_CHANGED not in _events(subscription)
        assert any("Bookmark failed" in r.getMessage() for r in caplog.records)


class TestEngineRejection:
    """A payload the engine refuses is dropped and the advance retried."""

    def test_rejected_track_leads_to_try_again(self, make_player, fake_engine):
        fake_engine.reject = 1
        player, _ = _start_with(make_player, "broken", "alpha")

        player.send(Message.INIT)

        assert wait_for(lambda: player.current_exists(), timeout=TEST_TIMEOUT)
        assert fake_engine.labels == [_display("alpha")]
        assert player.slot.load().display_name == _display("alpha")


class TestQuit:
    """QUIT stops background work, persists the volume and returns."""

    def test_quit_returns_and_closes_engine(self, make_player, fake_engine):
        player, _ = _start_with(make_player, "alpha", "beta")
        player.send(Message.QUIT)

        assert player.wait(TEST_TIMEOUT)
        assert fake_engine.closed
        assert len(player.queue) == 0
        player.pipeline.start.assert_called_once()
        player.pipeline.stop.assert_called_once()

    def test_quit_persists_volume(self, make_player, fake_engine, tmp_path):
        store = PersistentVolume.load(tmp_path)
        player, _ = _start_with(make_player, volume_store=store)

        player.send(ChangeVolume(0.2))
        player.send(Message.QUIT)

        assert player.wait(TEST_TIMEOUT)
        assert (tmp_path / "volume.txt").read_text().strip() == "70"
        assert PersistentVolume.load(tmp_path).as_float() == pytest.approx(0.7)

    def test_quit_interrupts_pending_advance(self, make_player, fake_engine):
        player, _ = _start_with(make_player)
        player.send(Message.INIT)
        time.sleep(0.1)

        player.send(Message.QUIT)

        assert player.wait(TEST_TIMEOUT)
        assert fake_engine.labels == []


class TestScenarioA:
    """Capacity 2; C1 ok, C2 fails once then C2b, C3: plays C1, C2b, C3."""

    def test_failed_fetch_is_replaced_in_order(self, make_player, fake_engine, scripted_source, scripted_downloader):
        player = make_player(capacity=2, source=scripted_source, downloader=scripted_downloader)
        subscription = player.subscribe()
        player.start()

        # NEXT is ignored while nothing plays, so the first advance is INIT
        for count, command in enumerate((Message.INIT, Message.NEXT, Message.NEXT), start=1):
            player.send(command)
            assert wait_for(
                lambda: len(fake_engine.labels) == count and player.current_exists(),
                timeout=TEST_TIMEOUT,
            )

        # Two per advance, none for the discarded c2 attempt
        assert wait_for(lambda: subscription._queue.qsize() >= 6)
        time.sleep(0.1)
        assert _events(subscription) == [UIEvent.TRACK_CHANGED] * 6
        assert fake_engine.labels == [_display("c1"), _display("c2b"), _display("c3")]
        assert player.pipeline.discarded_count == 1
        assert scripted_downloader.attempts[:4] == ["c1", "c2", "c2b", "c3"]
        assert _display("c2") not in fake_engine.labels

    def test_queue_never_exceeds_capacity(self, make_player, fake_engine):
        source = ScriptedSource([])
        player = make_player(capacity=2, source=source, downloader=ScriptedDownloader())
        player.start()

        assert wait_for(lambda: len(player.queue) == 2)
        time.sleep(0.2)
        assert len(player.queue) == 2
        # One worker holds at most one fetched track beyond the queue
        assert len(source.handed_out) <= 3
