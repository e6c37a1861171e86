from conftest import at
from damage_capture.core.expiry_watcher import ExpiryWatcher


def make_watcher():
    fired = []
    return ExpiryWatcher(fired.append, expiry_hour=23, expiry_minute=59, poll_interval=0.01), fired


def test_does_not_fire_before_boundary():
    watcher, fired = make_watcher()
    assert watcher.check(at(23, 58, 59)) is False
    assert fired == []


def test_fires_at_boundary_once_per_day():
    watcher, fired = make_watcher()
    assert watcher.check(at(23, 59)) is True
    assert watcher.check(at(23, 59, 30)) is False
    assert fired == [at(23, 59)]


def test_fires_when_first_poll_is_late():
    watcher, fired = make_watcher()
    assert watcher.check(at(23, 59, 45)) is True
    assert fired == [at(23, 59, 45)]


def test_fires_again_next_day():
    watcher, fired = make_watcher()
    watcher.check(at(23, 59, day=15))
    assert watcher.check(at(0, 1, day=16)) is False
    assert watcher.check(at(23, 59, day=16)) is True
    assert len(fired) == 2


def test_start_and_stop():
    watcher, _ = make_watcher()
    watcher.start()
    assert watcher._thread.is_alive()
    watcher.stop()
    assert watcher._thread is None
