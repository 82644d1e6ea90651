"""
proof.py

Nonce search and verification for the proof-of-work captcha.
A solution is the smallest nonce counted up from 0 whose candidate string
(challenge followed by the decimal nonce) hashes to a digest with enough
trailing zero hex digits.
"""

import logging
import re
from collections import namedtuple

from errors import InvalidSolutionFormat
from global_vars import DIFFICULTY, MAX_ITERATIONS
from utils import simple_hash, digest, meets_difficulty, candidate

logger = logging.getLogger(__name__)

SearchStepResult = namedtuple("SearchStepResult", ["found", "nonce", "hex_digest"])

_SOLUTION_RE = re.compile(r"[+-]?[0-9]+")


class SearchEngine:
    """
    Iterates candidate nonces for one challenge, a bounded step at a time.
    """
    def __init__(self, challenge, difficulty=DIFFICULTY):
        """
        Initialize a search at nonce 0.

        Args:
            challenge (str): Issued challenge token.
            difficulty (int): Required count of trailing zero hex digits.
        """
        if difficulty < 0:
            raise ValueError("difficulty must be non-negative")
        self.challenge = challenge
        self.difficulty = difficulty
        self.nonce = 0

    def step(self, max_iterations=MAX_ITERATIONS):
        """
        Try up to `max_iterations` nonces, starting from the current one.

        Returns:
            SearchStepResult: found=True with the solving nonce, or found=False
            with the next nonce to try and its digest for progress display.
        """
        for _ in range(max_iterations):
            h = simple_hash(candidate(self.challenge, self.nonce))
            if meets_difficulty(h, self.difficulty):
                return SearchStepResult(True, self.nonce, digest(h))
            self.nonce += 1

        current = digest(simple_hash(candidate(self.challenge, self.nonce)))
        return SearchStepResult(False, self.nonce, current)


def solve(challenge, difficulty=DIFFICULTY, max_iterations=MAX_ITERATIONS,
          should_stop=None):
    """
    Run a search to completion in the calling thread.

    Args:
        challenge (str): Issued challenge token.
        difficulty (int): Required count of trailing zero hex digits.
        max_iterations (int): Trials between cancellation checks.
        should_stop (callable, optional): Polled after every step.

    Returns:
        int | None: The solving nonce, or None if stopped first.
    """
    engine = SearchEngine(challenge, difficulty)
    while True:
        result = engine.step(max_iterations)
        if result.found:
            logger.debug("solved %r at nonce %d (%s)",
                         challenge[:12], result.nonce, result.hex_digest)
            return result.nonce
        if should_stop is not None and should_stop():
            return None


def parse_solution(solution):
    """
    Parse a submitted solution as a decimal integer.

    Raises:
        InvalidSolutionFormat: If the value is not a decimal integer.
    """
    if isinstance(solution, bool):
        raise InvalidSolutionFormat(f"invalid solution format: {solution!r}")
    if isinstance(solution, int):
        return solution
    if not isinstance(solution, str) or not _SOLUTION_RE.fullmatch(solution):
        raise InvalidSolutionFormat(f"invalid solution format: {solution!r}")
    return int(solution)


class Verifier:
    """
    Re-checks (challenge, solution) pairs against a fixed difficulty.

    The difficulty is not part of the challenge, so the verifier must be
    configured with the same value the challenge was issued with.
    """
    def __init__(self, difficulty=DIFFICULTY):
        if difficulty < 0:
            raise ValueError("difficulty must be non-negative")
        self.difficulty = difficulty

    def verify(self, challenge, solution):
        """
        Args:
            challenge (str): Issued challenge token.
            solution (str | int): Claimed nonce, usually its decimal string.

        Returns:
            bool: True if the pair meets the difficulty. Malformed input is
            reported as False, like a wrong answer.
        """
        if not challenge or not isinstance(challenge, str):
            return False
        try:
            nonce = parse_solution(solution)
        except InvalidSolutionFormat:
            return False
        h = simple_hash(candidate(challenge, nonce))
        return meets_difficulty(h, self.difficulty)


def verify_proof_of_work(challenge, solution, difficulty=DIFFICULTY):
    """
    Check a solution against a challenge at the given difficulty.
    """
    return Verifier(difficulty).verify(challenge, solution)
