"""
Player Service Tests

Transport state machine, queue navigation and device event handling.
"""

import math
import random

import pytest

from conftest import FakeAudioDevice, make_tracks


def _titles(tracks):
    return [t.title for t in tracks]


class TestTransport:
    """play / pause / stop"""

    def test_play_pause_on_empty_queue_stays_stopped(self, player, device):
        from services.player_service import TransportState

        assert player.play_pause() is False
        assert player.state.status == TransportState.STOPPED
        assert "play" not in device.names()

    def test_play_pause_toggles(self, loaded_player, device):
        from services.player_service import TransportState

        assert loaded_player.play_pause() is True
        assert loaded_player.state.status == TransportState.PLAYING
        assert device.commands[-1] == ("play", "/music/A.mp3")

        assert loaded_player.play_pause() is False
        assert loaded_player.state.status == TransportState.PAUSED
        assert device.commands[-1] == ("pause",)

    def test_play_publishes_track_started(self, loaded_player, recorder):
        from core.event_bus import EventType

        loaded_player.play()

        started = [data for event_type, data in recorder if event_type == EventType.TRACK_STARTED]
        assert _titles(started) == ["A"]

    def test_play_when_playing_is_noop(self, loaded_player, device):
        loaded_player.play()
        plays = device.names().count("play")
        assert loaded_player.play() is True
        assert device.names().count("play") == plays

    def test_stop_rewinds(self, loaded_player, device, recorder):
        from core.event_bus import EventType

        device.emit_metadata(200.0)
        loaded_player.play()
        device.emit_position(50.0)

        loaded_player.stop()

        state = loaded_player.state
        assert state.is_playing is False
        assert state.position_seconds == 0.0
        assert ("set_position", 0.0) in device.commands
        stopped = [data for event_type, data in recorder if event_type == EventType.PLAYBACK_STOPPED]
        assert stopped[-1]["reason"] == "stopped"

    def test_state_is_a_snapshot(self, loaded_player):
        state = loaded_player.state
        state.is_playing = True
        state.volume = 0.1
        assert loaded_player.state.is_playing is False
        assert loaded_player.state.volume == 1.0

    def test_first_track_loaded_on_add(self, player, device):
        player.add_tracks(make_tracks("A", "B"))
        assert [c for c in device.commands if c[0] == "load"] == [("load", "/music/A.mp3")]
        assert device.subscription_count == 1
        assert player.is_playing is False

    def test_metadata_sets_duration(self, player, device):
        device.durations["/music/A.mp3"] = 183.0
        player.add_tracks(make_tracks("A"))

        state = player.state
        assert state.duration_seconds == 183.0
        assert state.duration_str == "3:03"


class TestSeek:
    """seek_to clamping"""

    @pytest.mark.parametrize("target, expected", [
        (42.5, 42.5),
        (-3.0, 0.0),
        (250.0, 200.0),
        (200.0, 200.0),
        (0.0, 0.0),
        (float("nan"), 0.0),
        (float("inf"), 200.0),
    ])
    def test_seek_clamps_to_duration(self, loaded_player, device, target, expected):
        device.emit_metadata(200.0)

        applied = loaded_player.seek_to(target)

        assert applied == expected
        assert loaded_player.state.position_seconds == expected
        assert device.commands[-1] == ("set_position", expected)

    def test_seek_with_unknown_duration(self, loaded_player):
        assert loaded_player.seek_to(30.0) == 0.0

    def test_seek_on_empty_queue(self, player, device):
        assert player.seek_to(10.0) == 0.0
        assert "set_position" not in device.names()

    def test_seek_keeps_playing(self, loaded_player, device):
        device.emit_metadata(200.0)
        loaded_player.play()
        loaded_player.seek_to(60.0)
        assert loaded_player.is_playing is True

    def test_seek_relative(self, loaded_player, device):
        device.emit_metadata(100.0)
        loaded_player.seek_to(10.0)

        assert loaded_player.seek_forward() == 15.0
        assert loaded_player.seek_backward() == 10.0
        assert loaded_player.seek_relative(-50.0) == 0.0
        assert loaded_player.seek_relative(500.0) == 100.0


class TestNavigation:
    """next / previous"""

    @pytest.mark.parametrize("size", [1, 2, 3, 5])
    def test_next_then_previous_returns_to_start(self, player, size):
        titles = [chr(ord("A") + i) for i in range(size)]
        player.add_tracks(make_tracks(*titles))

        for start in range(size):
            player._queue.set_current(start)
            player.next()
            player.previous()
            assert player.current_index == start

    def test_next_wraps(self, loaded_player):
        loaded_player._queue.set_current(2)
        assert loaded_player.next().title == "A"
        assert loaded_player.current_index == 0

    def test_next_autoplays(self, loaded_player, device):
        loaded_player.next()
        assert loaded_player.is_playing is True
        assert device.commands[-1] == ("play", "/music/B.mp3")

    def test_next_on_empty_queue(self, player):
        from services.player_service import TransportState

        assert player.next() is None
        assert player.state.status == TransportState.STOPPED

    def test_previous_on_empty_queue(self, player):
        assert player.previous() is None
        assert player.is_playing is False

    def test_previous_wraps_to_last(self, loaded_player):
        assert loaded_player.previous().title == "C"
        assert loaded_player.is_playing is True

    def test_previous_past_threshold_restarts(self, loaded_player, device):
        device.emit_metadata(200.0)
        loaded_player.play()
        device.emit_position(10.0)

        track = loaded_player.previous()

        assert track.title == "A"
        assert loaded_player.current_index == 0
        assert loaded_player.state.position_seconds == 0.0
        assert device.commands[-1] == ("set_position", 0.0)

    def test_previous_at_threshold_navigates(self, loaded_player, device):
        device.emit_metadata(200.0)
        device.emit_position(3.0)
        assert loaded_player.previous().title == "C"

    def test_next_resets_position(self, loaded_player, device):
        device.emit_metadata(200.0)
        device.emit_position(120.0)
        loaded_player.next()
        state = loaded_player.state
        assert state.position_seconds == 0.0
        assert state.duration_seconds == 0.0


class TestShuffle:
    """Shuffle selection"""

    def test_toggle_shuffle_keeps_current(self, loaded_player):
        loaded_player._queue.set_current(1)
        assert loaded_player.toggle_shuffle() is True
        assert loaded_player.current_index == 1
        assert loaded_player.toggle_shuffle() is False

    def test_shuffle_picks_within_queue(self, loaded_player):
        loaded_player.set_shuffle(True)
        seen = set()
        for _ in range(60):
            loaded_player.next()
            seen.add(loaded_player.current_index)
        assert seen <= {0, 1, 2}
        assert len(seen) > 1

    def test_shuffle_can_repeat_current_by_default(self, event_bus, queue):
        from services.player_service import PlayerService

        class Always:
            def randrange(self, n):
                return 0

        player = PlayerService(FakeAudioDevice(), queue, event_bus, rng=Always())
        player.add_tracks(make_tracks("A", "B", "C"))
        player.set_shuffle(True)

        assert player.next().title == "A"

    def test_shuffle_avoid_current(self, event_bus, queue, tmp_path):
        from services.config_service import ConfigService
        from services.player_service import PlayerService

        config = ConfigService(str(tmp_path / "config.yaml"))
        config.set("playback.shuffle_avoid_current", True)
        player = PlayerService(FakeAudioDevice(), queue, event_bus, config=config,
                               rng=random.Random(7))
        player.add_tracks(make_tracks("A", "B", "C"))
        player.set_shuffle(True)

        previous = player.current_index
        for _ in range(50):
            player.next()
            assert player.current_index != previous
            previous = player.current_index

    def test_shuffle_single_track(self, player):
        player.add_tracks(make_tracks("A"))
        player.set_shuffle(True)
        assert player.next().title == "A"
        assert player.is_playing is True


class TestRepeat:
    """Repeat modes and end of track"""

    def test_cycle_order(self, player):
        from services.player_service import RepeatMode

        assert player.state.repeat_mode == RepeatMode.NONE
        assert player.cycle_repeat() == RepeatMode.ALL
        assert player.cycle_repeat() == RepeatMode.ONE
        assert player.cycle_repeat() == RepeatMode.NONE

    @pytest.mark.parametrize("start", ["none", "all", "one"])
    def test_three_cycles_return_to_start(self, player, start):
        from services.player_service import RepeatMode

        player.set_repeat_mode(RepeatMode(start))
        for _ in range(3):
            player.cycle_repeat()
        assert player.state.repeat_mode == RepeatMode(start)

    def test_ended_advances_with_repeat_none(self, loaded_player):
        loaded_player.on_track_ended()
        assert loaded_player.current_index == 1
        assert loaded_player.is_playing is True

    def test_ended_repeat_one_restarts(self, player, device):
        from services.player_service import RepeatMode

        player.add_tracks(make_tracks("A"))
        player.set_repeat_mode(RepeatMode.ONE)
        device.emit_metadata(180.0)
        player.play()
        device.emit_position(180.0)

        player.on_track_ended()

        state = player.state
        assert state.position_seconds == 0.0
        assert state.is_playing is True
        assert player.current_index == 0
        assert device.commands[-2:] == [("set_position", 0.0), ("play", "/music/A.mp3")]

    def test_ended_on_last_track_stops(self, player, recorder):
        from core.event_bus import EventType

        player.add_tracks(make_tracks("A", "B"))
        player.play_track(player.queue[1].id)

        player.on_track_ended()

        assert player.is_playing is False
        assert player.current_index == 1
        stopped = [data for event_type, data in recorder if event_type == EventType.PLAYBACK_STOPPED]
        assert stopped[-1]["reason"] == "queue_finished"

    def test_ended_repeat_all_wraps(self, loaded_player):
        from services.player_service import RepeatMode

        loaded_player.set_repeat_mode(RepeatMode.ALL)
        loaded_player.play_track(loaded_player.queue[2].id)

        loaded_player.on_track_ended()

        assert loaded_player.current_index == 0
        assert loaded_player.is_playing is True

    def test_device_end_event_drives_advance(self, loaded_player, device):
        loaded_player.play()
        device.emit_ended()
        assert loaded_player.current_track.title == "B"

    def test_ended_publishes_event(self, loaded_player, recorder):
        from core.event_bus import EventType
        from services.player_service import RepeatMode

        loaded_player.on_track_ended()

        ended = [data for event_type, data in recorder if event_type == EventType.TRACK_ENDED]
        assert ended[0]["track"].title == "A"
        assert ended[0]["repeat_mode"] == RepeatMode.NONE

    def test_ended_on_empty_queue(self, player):
        player.on_track_ended()
        assert player.is_playing is False


class TestVolume:
    """Volume clamping"""

    @pytest.mark.parametrize("requested, expected", [
        (1.5, 1.0),
        (-0.2, 0.0),
        (0.35, 0.35),
    ])
    def test_volume_clamped(self, player, device, requested, expected):
        assert player.set_volume(requested) == expected
        assert player.get_volume() == expected
        assert device.commands[-1] == ("set_volume", expected)

    def test_nan_volume_ignored(self, player):
        player.set_volume(0.4)
        assert player.set_volume(math.nan) == 0.4

    def test_default_volume_from_config(self, event_bus, queue, tmp_path):
        from services.config_service import ConfigService
        from services.player_service import PlayerService

        config = ConfigService(str(tmp_path / "config.yaml"))
        config.set("playback.default_volume", 0.6)
        device = FakeAudioDevice()

        player = PlayerService(device, queue, event_bus, config=config)

        assert player.get_volume() == 0.6
        assert device.commands[0] == ("set_volume", 0.6)


class TestQueueCoupling:
    """Removal, play_track and device subscriptions"""

    def test_remove_current_stops_and_resets(self, loaded_player, recorder):
        from core.event_bus import EventType

        loaded_player.play_track(loaded_player.queue[1].id)

        assert loaded_player.remove_track(loaded_player.current_track.id) is True

        assert loaded_player.current_index == 0
        assert loaded_player.current_track.title == "A"
        assert loaded_player.is_playing is False
        stopped = [data for event_type, data in recorder if event_type == EventType.PLAYBACK_STOPPED]
        assert stopped[-1]["reason"] == "removed"

    def test_remove_current_through_queue_directly(self, loaded_player, device):
        loaded_player.play()
        loaded_player._queue.remove(loaded_player.current_track.id)

        assert loaded_player.is_playing is False
        assert device.commands[-1] == ("load", "/music/B.mp3")

    def test_remove_only_track(self, player, device):
        from services.player_service import TransportState

        added = player.add_tracks(make_tracks("A"))
        player.play()

        player.remove_track(added[0].id)

        assert player.current_index is None
        assert player.state.status == TransportState.STOPPED
        assert device.subscription_count == 0

    def test_remove_other_track_keeps_playing(self, loaded_player):
        loaded_player.play()
        loaded_player.remove_track(loaded_player.queue[2].id)
        assert loaded_player.is_playing is True
        assert loaded_player.current_track.title == "A"

    def test_remove_unknown(self, loaded_player):
        assert loaded_player.remove_track("nope") is False

    def test_play_track(self, loaded_player):
        target = loaded_player.queue[2]
        assert loaded_player.play_track(target.id) is True
        assert loaded_player.current_track.id == target.id

    def test_play_unknown_track_changes_nothing(self, loaded_player, device, recorder):
        from core.event_bus import EventType

        commands = list(device.commands)

        assert loaded_player.play_track("missing") is False

        assert device.commands == commands
        assert loaded_player.current_index == 0
        errors = [data for event_type, data in recorder if event_type == EventType.ERROR_OCCURRED]
        assert errors[0]["kind"] == "not_found"

    def test_one_subscription_across_transitions(self, loaded_player, device):
        assert device.subscription_count == 1
        loaded_player.next()
        loaded_player.previous()
        loaded_player.play_track(loaded_player.queue[2].id)
        loaded_player.on_track_ended()
        loaded_player.remove_track(loaded_player.current_track.id)
        assert device.subscription_count == 1

    def test_cleanup_releases_subscription(self, loaded_player, device):
        loaded_player.cleanup()
        assert device.subscription_count == 0

    def test_events_from_previous_track_ignored(self, loaded_player, device):
        old_handles = list(device._active_subscriptions())
        loaded_player.next()
        device.emit_metadata(99.0)
        for handle in old_handles:
            handle._deliver_position(42.0)
            handle._deliver_ended()

        assert loaded_player.current_track.title == "B"
        assert loaded_player.state.position_seconds == 0.0

    def test_position_updates_from_device(self, loaded_player, device, recorder):
        from core.event_bus import EventType

        device.emit_position(12.5)

        assert loaded_player.state.position_seconds == 12.5
        assert loaded_player.state.position_str == "0:12"
        positions = [data for event_type, data in recorder if event_type == EventType.POSITION_CHANGED]
        assert positions[-1]["position"] == 12.5


class TestPlaybackFailure:
    """Failed and stale play completions"""

    def test_failed_play_falls_back_to_paused(self, loaded_player, device, recorder):
        from core.event_bus import EventType
        from services.player_service import TransportState

        device.fail_sources.add("/music/A.mp3")

        assert loaded_player.play() is False

        state = loaded_player.state
        assert state.status == TransportState.PAUSED
        assert state.last_error.track.title == "A"
        assert "unsupported" in state.last_error.error
        failures = [data for event_type, data in recorder if event_type == EventType.PLAYBACK_FAILED]
        assert len(failures) == 1

    def test_successful_play_clears_error(self, loaded_player, device):
        device.fail_sources.add("/music/A.mp3")
        loaded_player.play()
        device.fail_sources.clear()

        assert loaded_player.play() is True
        assert loaded_player.state.last_error is None

    def test_failure_for_previous_track_is_ignored(self, event_bus, queue):
        from core.errors import PlaybackStartFailed
        from services.player_service import PlayerService

        device = FakeAudioDevice(auto_resolve=False)
        player = PlayerService(device, queue, event_bus)
        player.add_tracks(make_tracks("A", "B"))

        player.play()
        first = device.play_futures[-1]
        player.next()
        second = device.play_futures[-1]

        device.complete(first, PlaybackStartFailed("late failure"))
        assert player.is_playing is True
        assert player.state.last_error is None

        device.complete(second)
        assert player.is_playing is True
        assert player.current_track.title == "B"

    def test_failure_after_pause_is_ignored(self, event_bus, queue):
        from core.errors import PlaybackStartFailed
        from services.player_service import PlayerService

        device = FakeAudioDevice(auto_resolve=False)
        player = PlayerService(device, queue, event_bus)
        player.add_tracks(make_tracks("A"))

        player.play()
        pending = device.play_futures[-1]
        player.pause()
        device.complete(pending, PlaybackStartFailed("late failure"))

        assert player.is_playing is False
        assert player.state.last_error is None

    def test_late_failure_for_current_play_applies(self, event_bus, queue):
        from core.errors import PlaybackStartFailed
        from services.player_service import PlayerService

        device = FakeAudioDevice(auto_resolve=False)
        player = PlayerService(device, queue, event_bus)
        player.add_tracks(make_tracks("A"))

        player.play()
        assert player.is_playing is True

        device.complete(device.play_futures[-1], PlaybackStartFailed("denied"))
        assert player.is_playing is False
        assert player.state.last_error.error == "denied"

    def test_pending_play_cancelled_on_switch(self, event_bus, queue):
        from concurrent.futures import Future
        from services.player_service import PlayerService

        class QueuedDevice(FakeAudioDevice):
            def play(self):
                self.commands.append(("play", self._current_source))
                future = Future()  # not started yet, can be cancelled
                self.play_futures.append(future)
                return future

        device = QueuedDevice()
        player = PlayerService(device, queue, event_bus)
        player.add_tracks(make_tracks("A", "B"))

        player.play()
        player.next()

        assert device.play_futures[0].cancelled()
        assert not device.play_futures[1].cancelled()


class TestConcurrency:
    """Public operations called from several threads"""

    def test_remove_racing_navigation(self, event_bus, queue):
        import threading
        from services.player_service import PlayerService

        player = PlayerService(FakeAudioDevice(), queue, event_bus, rng=random.Random(3))
        added = player.add_tracks(make_tracks(*[f"T{i}" for i in range(50)]))
        player.play()
        errors = []
        removed_all = threading.Event()

        def remover():
            try:
                for track in added:
                    player.remove_track(track.id)
            except Exception as e:
                errors.append(e)
            finally:
                removed_all.set()

        def navigator():
            try:
                while not removed_all.is_set():
                    player.next()
                    player.on_track_ended()
                    with queue.lock:
                        index = queue.current_index
                        if index is not None and not 0 <= index < len(queue):
                            errors.append(IndexError(index))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=remover), threading.Thread(target=navigator)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert len(queue) == 0
        assert queue.current_index is None
        assert player.current_track is None
