"""
Tests for the playback controller state machine.
"""

import asyncio
import random

import pytest

from music_shelf.domain.playback import (
    DurationKnown,
    LoadFailed,
    Next,
    Pause,
    Play,
    PlaybackController,
    PositionChanged,
    Prev,
    RepeatMode,
    Resume,
    Seek,
    SetSource,
    ShuffleMode,
    Shutdown,
    Stop,
    TogglePlay,
    ToggleRepeat,
    ToggleShuffle,
    TrackEnded,
)

from conftest import make_song

pytestmark = pytest.mark.asyncio


@pytest.fixture
def controller(backend, tracker):
    return PlaybackController(backend, tracker, rng=random.Random(0))


def make_controller(backend, tracker, **kwargs):
    return PlaybackController(backend, tracker, rng=random.Random(0), **kwargs)


class TestPlay:
    async def test_play_without_identity_starts_at_first_song(self, controller, backend, songs):
        state = await controller.dispatch(Play(source=songs))

        assert state.current_song.id == "A"
        assert state.is_playing is True
        assert state.status == "playing"
        assert backend.calls == [("load", "A"), ("play",)]

    async def test_play_specific_song(self, controller, backend, songs):
        state = await controller.dispatch(Play(song_id="B", source=songs))

        assert state.index == 1
        assert backend.loads() == ["B"]

    async def test_play_unknown_song_is_ignored(self, controller, backend, songs):
        state = await controller.dispatch(Play(song_id="Z", source=songs))

        assert state.has_cursor is False
        assert backend.calls == []

    async def test_play_empty_source(self, controller, backend):
        state = await controller.dispatch(Play(source=[]))

        assert state.status == "idle"
        assert backend.calls == []

    async def test_play_with_cursor_and_no_identity_resumes(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(Pause())

        state = await controller.dispatch(Play())

        assert state.is_playing is True
        assert state.index == 1
        assert backend.loads() == ["B"]
        assert backend.calls[-1] == ("play",)

    async def test_toggle_play_when_idle_starts_held_source(self, controller, backend, songs):
        await controller.dispatch(SetSource(songs))

        state = await controller.dispatch(TogglePlay())

        assert state.current_song.id == "A"
        assert state.is_playing is True

    async def test_toggle_play_pauses_and_resumes(self, controller, backend, songs):
        await controller.dispatch(Play(source=songs))

        assert (await controller.dispatch(TogglePlay())).is_playing is False
        assert (await controller.dispatch(TogglePlay())).is_playing is True
        assert backend.calls[-2:] == [("pause",), ("play",)]


class TestPauseResume:
    async def test_pause_only_changes_playing(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(PositionChanged(12.0))

        state = await controller.dispatch(Pause())

        assert state.is_playing is False
        assert state.index == 1
        assert state.position == 12.0
        assert backend.loads() == ["B"]

    async def test_resume_when_idle_is_noop(self, controller, backend):
        state = await controller.dispatch(Resume())

        assert state.status == "idle"
        assert backend.calls == []


class TestNext:
    async def test_advances_and_keeps_playing(self, controller, backend, songs):
        await controller.dispatch(Play(source=songs))

        state = await controller.dispatch(Next())

        assert state.current_song.id == "B"
        assert state.is_playing is True
        assert backend.calls[-2:] == [("load", "B"), ("play",)]

    async def test_next_while_paused_stays_paused(self, controller, backend, songs):
        await controller.dispatch(Play(source=songs))
        await controller.dispatch(Pause())

        state = await controller.dispatch(Next())

        assert state.current_song.id == "B"
        assert state.is_playing is False
        assert backend.calls[-1] == ("load", "B")

    async def test_end_of_queue_without_repeat_stops_on_last(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="C", source=songs))

        state = await controller.dispatch(TrackEnded())

        assert state.index == 2
        assert state.is_playing is False
        assert backend.loads() == ["C"]
        assert state.ended is True

    async def test_toggle_play_after_end_of_queue_restarts_last_track(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="C", source=songs))
        await controller.dispatch(PositionChanged(180.0))
        await controller.dispatch(TrackEnded())

        state = await controller.dispatch(TogglePlay())

        assert state.current_song.id == "C"
        assert state.status == "playing"
        assert state.position == 0.0
        assert state.ended is False
        assert backend.calls[-2:] == [("seek", 0.0), ("play",)]
        assert backend.loads() == ["C"]

    async def test_resume_at_known_end_of_track_restarts(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(Pause())
        await controller.dispatch(PositionChanged(180.0))

        state = await controller.dispatch(Resume())

        assert state.position == 0.0
        assert backend.calls[-2:] == [("seek", 0.0), ("play",)]

    async def test_seek_after_end_of_queue_resumes_from_there(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="C", source=songs))
        await controller.dispatch(TrackEnded())
        await controller.dispatch(Seek(30.0))

        state = await controller.dispatch(Resume())

        assert state.position == 30.0
        assert backend.calls[-2:] == [("seek", 30.0), ("play",)]

    async def test_end_of_queue_with_repeat_all_wraps(self, backend, tracker, songs):
        controller = make_controller(backend, tracker, repeat_mode=RepeatMode.ALL)
        await controller.dispatch(Play(song_id="C", source=songs))

        state = await controller.dispatch(TrackEnded())

        assert state.current_song.id == "A"
        assert state.is_playing is True
        assert backend.calls[-2:] == [("load", "A"), ("play",)]

    async def test_repeat_one_replays_current(self, backend, tracker, songs):
        controller = make_controller(backend, tracker, repeat_mode=RepeatMode.ONE)
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(PositionChanged(170.0))

        state = await controller.dispatch(TrackEnded())

        assert state.current_song.id == "B"
        assert state.position == 0.0
        assert state.is_playing is True
        assert backend.loads() == ["B"]
        assert backend.calls[-2:] == [("seek", 0.0), ("play",)]

    async def test_next_when_idle_is_noop(self, controller, backend):
        await controller.dispatch(Next())
        assert backend.calls == []


class TestPrev:
    async def test_restarts_track_past_threshold(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(PositionChanged(4.0))

        state = await controller.dispatch(Prev())

        assert state.index == 1
        assert state.position == 0.0
        assert ("seek", 0.0) in backend.calls
        assert backend.loads() == ["B"]

    async def test_goes_back_early_in_track(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))
        await controller.dispatch(PositionChanged(1.0))

        state = await controller.dispatch(Prev())

        assert state.current_song.id == "A"
        assert backend.loads() == ["B", "A"]

    async def test_at_start_without_repeat_is_noop(self, controller, backend, songs):
        await controller.dispatch(Play(source=songs))

        state = await controller.dispatch(Prev())

        assert state.index == 0
        assert backend.loads() == ["A"]

    async def test_at_start_with_repeat_all_wraps_to_end(self, backend, tracker, songs):
        controller = make_controller(backend, tracker, repeat_mode=RepeatMode.ALL)
        await controller.dispatch(Play(source=songs))

        state = await controller.dispatch(Prev())

        assert state.current_song.id == "C"


class TestSeek:
    async def test_clamped_to_duration(self, controller, backend, songs):
        await controller.dispatch(Play(source=songs))
        await controller.dispatch(DurationKnown(100.0))

        assert (await controller.dispatch(Seek(150.0))).position == 100.0
        assert (await controller.dispatch(Seek(-5.0))).position == 0.0
        assert backend.calls[-2:] == [("seek", 100.0), ("seek", 0.0)]

    async def test_unknown_duration_has_no_upper_clamp(self, controller, backend):
        await controller.dispatch(Play(source=[make_song("x", duration=0.0)]))

        state = await controller.dispatch(Seek(500.0))

        assert state.position == 500.0

    async def test_seek_keeps_playing_flag(self, controller, songs):
        await controller.dispatch(Play(source=songs))
        await controller.dispatch(Pause())

        state = await controller.dispatch(Seek(30.0))

        assert state.is_playing is False


class TestModes:
    async def test_repeat_cycle(self, controller):
        modes = [(await controller.dispatch(ToggleRepeat())).repeat_mode for _ in range(3)]
        assert modes == [RepeatMode.ALL, RepeatMode.ONE, RepeatMode.NONE]

    async def test_shuffle_toggle_keeps_current_song_without_reload(self, controller, backend):
        source = [make_song(str(i)) for i in range(10)]
        await controller.dispatch(Play(song_id="4", source=source))
        await controller.dispatch(PositionChanged(42.0))

        state = await controller.dispatch(ToggleShuffle())

        assert state.shuffle_mode is ShuffleMode.RANDOM
        assert state.current_song.id == "4"
        assert state.queue[state.index].id == "4"
        assert sorted(s.id for s in state.queue) == sorted(s.id for s in source)
        assert state.position == 42.0
        assert state.is_playing is True
        assert backend.loads() == ["4"]

    async def test_shuffle_back_to_none_restores_source_order(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="C", source=songs))
        for _ in range(3):
            state = await controller.dispatch(ToggleShuffle())

        assert state.shuffle_mode is ShuffleMode.NONE
        assert [s.id for s in state.queue] == ["A", "B", "C"]
        assert state.index == 2

    async def test_source_change_relocates_current_song(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))

        state = await controller.dispatch(SetSource(list(reversed(songs))))

        assert [s.id for s in state.queue] == ["C", "B", "A"]
        assert state.index == 1
        assert backend.loads() == ["B"]

    async def test_source_change_without_current_song_stops(self, controller, backend, songs):
        await controller.dispatch(Play(song_id="B", source=songs))

        state = await controller.dispatch(SetSource([songs[0], songs[2]]))

        assert state.status == "idle"
        assert backend.calls[-1] == ("stop",)


class TestStopAndFailures:
    async def test_stop_goes_idle_and_keeps_modes(self, backend, tracker, songs):
        controller = make_controller(backend, tracker, repeat_mode=RepeatMode.ALL)
        await controller.dispatch(Play(source=songs))

        state = await controller.dispatch(Stop())

        assert state.status == "idle"
        assert state.current_song is None
        assert state.repeat_mode is RepeatMode.ALL
        assert backend.calls[-1] == ("stop",)

    async def test_load_failure_is_absorbed(self, controller, backend, songs):
        backend.fail_on_load = {"A"}

        state = await controller.dispatch(Play(source=songs))

        assert state.current_song.id == "A"
        assert state.is_playing is False
        assert "cannot decode" in state.last_error
        assert ("play",) not in backend.calls

    async def test_failed_track_can_be_skipped(self, controller, backend, songs):
        backend.fail_on_load = {"A"}
        await controller.dispatch(Play(source=songs))
        await controller.dispatch(Resume())

        state = await controller.dispatch(Next())

        assert state.current_song.id == "B"
        assert state.last_error is None

    async def test_unexpected_backend_error_is_absorbed(self, controller, backend, songs):
        backend.fail_on_play = True

        state = await controller.dispatch(Play(source=songs))

        assert state.is_playing is False
        assert state.last_error == "audio device lost"

    async def test_load_failed_event(self, controller, songs):
        await controller.dispatch(Play(song_id="B", source=songs))

        state = await controller.dispatch(LoadFailed("unsupported codec"))

        assert state.index == 1
        assert state.is_playing is False
        assert state.last_error == "unsupported codec"

    async def test_events_for_other_songs_are_ignored(self, controller, songs):
        await controller.dispatch(Play(song_id="B", source=songs))

        state = await controller.dispatch(PositionChanged(30.0, song_id="A"))

        assert state.position == 0.0

    async def test_unknown_message_type(self, controller):
        with pytest.raises(TypeError):
            await controller.dispatch("play")


async def test_run_processes_inbox_until_shutdown(controller, backend, songs):
    seen = []
    controller.add_listener(seen.append)

    controller.post(Play(source=songs))
    controller.post(Next())
    controller.post(Shutdown())
    await asyncio.wait_for(controller.run(), timeout=1.0)

    assert controller.snapshot.current_song.id == "B"
    assert [s.current_song.id for s in seen] == ["A", "B"]
