"""
Contract tests for TrackList

Covers:
- Parsing: base line, custom names, comments and blank lines
- Loading from disk and the failure modes
- Random selection without immediate repeats, safe under concurrency
"""

import random
import threading

import pytest

from lofistream.errors import TrackListError
from lofistream.music_logic.track_list import TrackList, parse_entry

LIST_TEXT = """\
https://lofi.example/tracks/
# favourites
2023/05/rainy_morning.mp3

2023/05/night_walk.mp3!Night Walk (edit)
"""


class TestParsing:

    def test_base_and_entries(self):
        track_list = TrackList.parse("chill", LIST_TEXT)

        assert track_list.name == "chill"
        assert track_list.base == "https://lofi.example/tracks/"
        assert len(track_list) == 2

    def test_custom_name_entry(self):
        candidate = parse_entry("2023/05/night_walk.mp3!Night Walk (edit)")
        assert candidate.identifier == "2023/05/night_walk.mp3"
        assert candidate.display_name == "Night Walk (edit)"

    def test_empty_custom_name_is_ignored(self):
        assert parse_entry("a.mp3!").display_name is None

    def test_base_only_is_rejected(self):
        with pytest.raises(TrackListError):
            TrackList.parse("empty", "https://lofi.example/\n# nothing here\n")

    def test_blank_file_is_rejected(self):
        with pytest.raises(TrackListError):
            TrackList.parse("blank", "\n\n")


class TestLoading:

    def test_load_uses_file_stem_as_name(self, tmp_path):
        path = tmp_path / "study_beats.txt"
        path.write_text(LIST_TEXT, encoding="utf-8")

        track_list = TrackList.load(path)

        assert track_list.name == "study_beats"
        assert len(track_list) == 2

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(TrackListError, match="Unable to read track list"):
            TrackList.load(tmp_path / "missing.txt")


class TestSelection:

    def test_single_entry_repeats(self):
        track_list = TrackList.parse("one", "https://lofi.example/\nonly.mp3\n")
        picks = {track_list.next_candidate().identifier for _ in range(5)}
        assert picks == {"only.mp3"}

    def test_no_immediate_repeat(self):
        text = "https://lofi.example/\n" + "\n".join(f"t{i}.mp3" for i in range(3))
        track_list = TrackList.parse("three", text, rng=random.Random(7))

        picks = [track_list.next_candidate().identifier for _ in range(200)]

        assert all(a != b for a, b in zip(picks, picks[1:]))
        assert set(picks) == {"t0.mp3", "t1.mp3", "t2.mp3"}

    def test_concurrent_callers(self):
        text = "https://lofi.example/\n" + "\n".join(f"t{i}.mp3" for i in range(10))
        track_list = TrackList.parse("ten", text)
        picks = []
        lock = threading.Lock()

        def pick():
            for _ in range(100):
                identifier = track_list.next_candidate().identifier
                with lock:
                    picks.append(identifier)

        threads = [threading.Thread(target=pick) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(picks) == 400
