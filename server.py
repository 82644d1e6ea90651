"""
server.py

Flask service that issues proof-of-work challenges and redeems solutions.
Each challenge can be redeemed once; the difficulty is fixed by the issuer
and must match what clients are told to search for.
"""

import logging
import secrets
import string
import threading

from flask import Flask, jsonify, request

import _log
from global_vars import CHALLENGE_LENGTH, DIFFICULTY, SERVER_PORT
from errors import InvalidSolutionFormat
from proof import Verifier, parse_solution
from storage import new_challenge_storage

logger = logging.getLogger(__name__)

CHARSET = string.ascii_letters + string.digits
MAX_TRIES = 1000


def generate_random_string(length, charset=CHARSET):
    """
    Random string of `length` characters drawn from `charset`.
    """
    return "".join(secrets.choice(charset) for _ in range(length))


class Issuer:
    """
    Hands out challenges and checks submitted solutions against them.
    """
    def __init__(self, store=None, difficulty=DIFFICULTY, challenge_length=CHALLENGE_LENGTH):
        """
        Args:
            store (ChallengeStorage, optional): Where issued challenges live.
            difficulty (int): Trailing zero hex digits required of solutions.
            challenge_length (int): Length of generated challenges.
        """
        self.store = store if store is not None else new_challenge_storage()
        self.verifier = Verifier(difficulty)
        self.challenge_length = challenge_length
        self.lock = threading.Lock()

    @property
    def difficulty(self):
        return self.verifier.difficulty

    def new_challenge(self):
        """
        Generate a challenge not already in the store and record it as unsolved.
        Expired challenges are purged first so unredeemed ones do not pile up.
        """
        purged = self.store.purge_expired()
        if purged:
            logger.debug("purged %d expired challenges", purged)
        for _ in range(MAX_TRIES):
            challenge = generate_random_string(self.challenge_length)
            with self.lock:
                _, exists = self.store.get(challenge)
                if exists:
                    continue
                self.store.store(challenge, False)
            logger.debug("issued challenge %s…", challenge[:12])
            return challenge
        raise RuntimeError("could not generate a unique challenge")

    def check(self, challenge, solution):
        """
        Redeem a solution for an issued challenge.

        Returns:
            tuple: (ok, error_message). On success the challenge is marked
            solved and cannot be redeemed again.
        """
        if not isinstance(challenge, str) or not isinstance(solution, str):
            return False, "challenge and solution are required"
        if not challenge or not solution:
            return False, "challenge and solution are required"

        try:
            parse_solution(solution)
        except InvalidSolutionFormat:
            return False, "invalid solution format"

        with self.lock:
            solved, exists = self.store.get(challenge)
            if not exists:
                return False, "challenge not found"
            if solved:
                return False, "challenge already solved"

            if not self.verifier.verify(challenge, solution):
                return False, "invalid proof of work"

            self.store.store(challenge, True)

        logger.info("challenge %s… solved with %s", challenge[:12], solution)
        return True, ""


flask_app = Flask(__name__)
issuer = Issuer()


@flask_app.route('/challenge', methods=['GET'])
def get_challenge():
    """
    Issue a fresh challenge together with the difficulty to solve it at.
    """
    challenge = issuer.new_challenge()
    return jsonify({"challenge": challenge, "difficulty": issuer.difficulty})


@flask_app.route('/verify', methods=['POST'])
def verify():
    """
    Redeem a solution sent as form fields or JSON.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    challenge = data.get("pow_challenge", "")
    solution = data.get("pow_solution", "")
    if not isinstance(challenge, str):
        challenge = ""
    if isinstance(solution, int) and not isinstance(solution, bool):
        solution = str(solution)

    ok, error = issuer.check(challenge, solution)
    if not ok:
        logger.warning("rejected solution: %s", error)
        return jsonify({"ok": False, "error": error}), 400
    return jsonify({"ok": True})


if __name__ == "__main__":
    _log.setup_logging()
    try:
        flask_app.run(port=SERVER_PORT)
    finally:
        issuer.store.close()
