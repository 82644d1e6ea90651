import threading

import pytest

from errors import AlreadyWorkingError, EmptyChallengeError
from proof import verify_proof_of_work
from session import SessionController, SessionObserver, SessionState

# difficulty 8 needs a "00000000" digest, which no hash produces
NEVER = 8


class RecordingObserver(SessionObserver):
    def __init__(self):
        self.events = []
        self.progressed = threading.Event()
        self.succeeded = threading.Event()

    def on_started(self, challenge, difficulty):
        self.events.append(("started", challenge, difficulty))

    def on_progress(self, snapshot):
        self.events.append(("progress", snapshot))
        self.progressed.set()

    def on_success(self, challenge, solution):
        self.events.append(("success", challenge, solution))
        self.succeeded.set()

    def on_stopped(self):
        self.events.append(("stopped",))

    def on_reset(self):
        self.events.append(("reset",))


def test_initial_state():
    controller = SessionController()
    assert controller.state is SessionState.IDLE
    assert controller.solution is None
    assert controller.nonce == 0
    assert controller.progress is None
    assert controller.wait(0) is None


def test_search_succeeds_and_verifies():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=0)
    controller.start("abc123", 2, 50)

    solution = controller.wait(timeout=10)
    assert solution is not None
    assert controller.state is SessionState.SUCCEEDED
    assert controller.solution == solution
    assert verify_proof_of_work("abc123", str(solution), 2)

    assert observer.succeeded.wait(5)
    assert observer.events[0] == ("started", "abc123", 2)
    assert observer.events[-1] == ("success", "abc123", solution)


def test_progress_snapshots_while_working():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=0)
    controller.start("abc123", NEVER, 20)
    assert observer.progressed.wait(5)
    controller.stop()

    snapshots = [e[1] for e in observer.events if e[0] == "progress"]
    assert snapshots[0].nonce == 20
    assert len(snapshots[0].hex_digest) == 8
    assert all(b.nonce - a.nonce == 20 for a, b in zip(snapshots, snapshots[1:]))


def test_start_while_working_fails_without_touching_nonce():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=30)
    controller.start("abc123", NEVER, 5)
    assert observer.progressed.wait(5)
    assert controller.nonce == 5

    with pytest.raises(AlreadyWorkingError):
        controller.start("other", 1, 5)

    assert controller.state is SessionState.WORKING
    assert controller.nonce == 5
    controller.stop()


def test_empty_challenge_rejected():
    controller = SessionController(step_delay=0)
    with pytest.raises(EmptyChallengeError):
        controller.start("", 1, 10)
    with pytest.raises(EmptyChallengeError):
        controller.start(None, 1, 10)
    assert controller.state is SessionState.IDLE


def test_stop_halts_search():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=0.01)
    controller.start("abc123", NEVER, 10)
    assert observer.progressed.wait(5)

    controller.stop()
    assert controller.state is SessionState.STOPPED
    assert controller.wait(1) is None
    assert ("stopped",) in observer.events

    # stopping again is a no-op
    controller.stop()
    assert observer.events.count(("stopped",)) == 1


def test_stop_is_noop_when_idle():
    observer = RecordingObserver()
    controller = SessionController(observer)
    controller.stop()
    assert controller.state is SessionState.IDLE
    assert observer.events == []


def test_reset_clears_state_and_is_idempotent():
    controller = SessionController(step_delay=0)
    controller.start("abc123", 1, 100)
    assert controller.wait(10) is not None

    controller.reset()
    assert controller.state is SessionState.IDLE
    assert controller.solution is None
    assert controller.nonce == 0
    assert controller.progress is None

    controller.reset()
    assert controller.state is SessionState.IDLE
    assert controller.solution is None
    assert controller.nonce == 0


def test_reset_while_working_returns_to_idle():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=0.01)
    controller.start("abc123", NEVER, 10)
    assert observer.progressed.wait(5)

    controller.reset()
    assert controller.state is SessionState.IDLE
    assert controller.nonce == 0
    assert ("reset",) in observer.events


def test_restart_after_stop_begins_at_zero():
    observer = RecordingObserver()
    controller = SessionController(observer, step_delay=0.01)
    controller.start("abc123", NEVER, 10)
    assert observer.progressed.wait(5)
    controller.stop()

    controller.start("abc123", 1, 100)
    solution = controller.wait(10)
    assert solution is not None
    assert verify_proof_of_work("abc123", str(solution), 1)
    assert controller.state is SessionState.SUCCEEDED


def test_invalid_arguments():
    controller = SessionController()
    with pytest.raises(ValueError):
        controller.start("abc", 1, 0)
    with pytest.raises(ValueError):
        controller.start("abc", -1, 10)
    assert controller.state is SessionState.IDLE


class BlockingObserver(RecordingObserver):
    """Holds the worker inside on_progress until released."""
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def on_progress(self, snapshot):
        super().on_progress(snapshot)
        self.release.wait(5)


@pytest.mark.parametrize("action, event", [("stop", "stopped"), ("reset", "reset")])
def test_no_progress_after_stop_or_reset(action, event):
    observer = BlockingObserver()
    controller = SessionController(observer, step_delay=0)
    controller.start("abc123", NEVER, 10)
    assert observer.progressed.wait(5)

    caller = threading.Thread(target=getattr(controller, action))
    caller.start()
    caller.join(0.2)
    # the transition waits for the running hook to return
    assert caller.is_alive()

    observer.release.set()
    caller.join(5)
    assert not caller.is_alive()

    names = [e[0] for e in observer.events]
    assert names[-1] == event
    assert "progress" not in names[names.index(event):]
