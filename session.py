"""
session.py

Runs a proof-of-work search on a background thread and tracks its state.

A controller owns a single search at a time. The worker thread steps the
SearchEngine and checks the session state between steps, so stop() and
reset() take effect at the next step boundary.
"""

import logging
import threading
import time
from collections import namedtuple
from enum import Enum

from errors import AlreadyWorkingError, EmptyChallengeError
from global_vars import DIFFICULTY, MAX_ITERATIONS, STEP_DELAY
from proof import SearchEngine

logger = logging.getLogger(__name__)

ProgressSnapshot = namedtuple("ProgressSnapshot", ["nonce", "hex_digest"])


class SessionState(Enum):
    IDLE = "idle"
    WORKING = "working"
    SUCCEEDED = "succeeded"
    STOPPED = "stopped"


class SessionObserver:
    """
    Receives session notifications. Subclass and override what you need;
    every hook is a no-op by default. Hooks run synchronously, either in the
    caller's thread (start/stop/reset) or in the worker thread.
    """
    def on_started(self, challenge, difficulty):
        pass

    def on_progress(self, snapshot):
        pass

    def on_success(self, challenge, solution):
        pass

    def on_stopped(self):
        pass

    def on_reset(self):
        pass


class LoggingObserver(SessionObserver):
    """
    Reports session events through the logging module.
    """
    def __init__(self, log=logger):
        self.log = log

    def on_started(self, challenge, difficulty):
        self.log.info("COMPUTING... difficulty %d, challenge %s…", difficulty, challenge[:12])

    def on_progress(self, snapshot):
        self.log.info("Tried %d possibilities... (Current hash: %s)",
                      snapshot.nonce, snapshot.hex_digest)

    def on_success(self, challenge, solution):
        self.log.info("SUCCESS! solution %d", solution)

    def on_stopped(self):
        self.log.info("Computation stopped.")

    def on_reset(self):
        self.log.debug("Session reset.")


class SessionController:
    """
    Start/stop/reset state machine around a single SearchEngine.

    IDLE -> WORKING -> SUCCEEDED | STOPPED, and any state -> IDLE on reset().
    """
    def __init__(self, observer=None, step_delay=STEP_DELAY):
        """
        Args:
            observer (SessionObserver, optional): Notified of state changes
                and progress.
            step_delay (float): Seconds to sleep between search steps.
        """
        self.observer = observer if observer is not None else SessionObserver()
        self.step_delay = step_delay

        self.lock = threading.Lock()
        self.cond = threading.Condition(self.lock)
        # held across a transition and its observer hook, so hooks arrive in
        # transition order; always taken before self.lock
        self.notify_lock = threading.RLock()

        self._state = SessionState.IDLE
        self._engine = None
        self._solution = None
        self._progress = None
        self._worker = None

    @property
    def state(self):
        return self._state

    @property
    def working(self):
        return self._state is SessionState.WORKING

    @property
    def solution(self):
        return self._solution

    @property
    def nonce(self):
        engine = self._engine
        return engine.nonce if engine is not None else 0

    @property
    def progress(self):
        return self._progress

    def start(self, challenge, difficulty=DIFFICULTY, max_iterations=MAX_ITERATIONS):
        """
        Begin searching for a solution on a background thread.

        Raises:
            AlreadyWorkingError: A search is already in progress.
            EmptyChallengeError: The challenge is empty or missing.
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        with self.notify_lock:
            with self.lock:
                if self._state is SessionState.WORKING:
                    raise AlreadyWorkingError()
                if not challenge:
                    raise EmptyChallengeError()

                engine = SearchEngine(challenge, difficulty)
                self._engine = engine
                self._solution = None
                self._progress = None
                self._state = SessionState.WORKING
                self._worker = threading.Thread(
                    target=self._run,
                    args=(engine, max_iterations),
                    daemon=True
                )
                worker = self._worker

            logger.debug("starting search, difficulty %d", difficulty)
            self.observer.on_started(challenge, difficulty)
            worker.start()

    def stop(self):
        """
        Halt the running search. Does nothing unless WORKING.
        """
        with self.notify_lock:
            with self.lock:
                if self._state is not SessionState.WORKING:
                    return
                self._state = SessionState.STOPPED
                self.cond.notify_all()

            logger.debug("search stopped at nonce %d", self.nonce)
            self.observer.on_stopped()

    def reset(self):
        """
        Clear solution, nonce and progress and return to IDLE.
        """
        with self.notify_lock:
            with self.lock:
                self._state = SessionState.IDLE
                self._engine = None
                self._solution = None
                self._progress = None
                self.cond.notify_all()

            self.observer.on_reset()

    def wait(self, timeout=None):
        """
        Block until the session leaves WORKING or the timeout expires.

        Returns:
            int | None: The solution if the search succeeded.
        """
        with self.cond:
            self.cond.wait_for(lambda: self._state is not SessionState.WORKING, timeout)
            return self._solution

    def _current(self, engine):
        # caller holds self.lock
        return self._engine is engine and self._state is SessionState.WORKING

    def _run(self, engine, max_iterations):
        """
        Worker loop: one SearchEngine step per iteration until found,
        stopped, reset or superseded by a newer start().
        """
        try:
            while True:
                with self.lock:
                    if not self._current(engine):
                        return

                result = engine.step(max_iterations)

                with self.notify_lock:
                    with self.lock:
                        if not self._current(engine):
                            return
                        if result.found:
                            self._solution = result.nonce
                            self._state = SessionState.SUCCEEDED
                            self.cond.notify_all()
                        else:
                            snapshot = ProgressSnapshot(result.nonce, result.hex_digest)
                            self._progress = snapshot

                    if result.found:
                        logger.debug("found solution %d (%s)", result.nonce, result.hex_digest)
                        self.observer.on_success(engine.challenge, result.nonce)
                        return

                    self.observer.on_progress(snapshot)

                if self.step_delay:
                    time.sleep(self.step_delay)
        except Exception:
            logger.exception("search worker failed")
            with self.lock:
                if self._current(engine):
                    self._state = SessionState.STOPPED
                    self.cond.notify_all()
            raise
