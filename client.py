"""
client.py

Command-line client: fetches a challenge from the issuer, solves it on a
background SessionController and submits the solution.
"""

import argparse
import logging

import requests

import _log
from global_vars import MAX_ITERATIONS, SERVER_URL
from session import LoggingObserver, SessionController

logger = logging.getLogger(__name__)

TIMEOUT = 10


def fetch_challenge(base_url=SERVER_URL):
    """
    Ask the issuer for a new challenge.

    Returns:
        tuple: (challenge, difficulty)
    """
    resp = requests.get(f"{base_url}/challenge", timeout=TIMEOUT)
    resp.raise_for_status()
    data = resp.json()
    return data["challenge"], data["difficulty"]


def submit_solution(base_url, challenge, solution):
    """
    Send a solution to the issuer as form fields.

    Returns:
        tuple: (ok, error_message)
    """
    resp = requests.post(f"{base_url}/verify",
                         data={"pow_challenge": challenge, "pow_solution": str(solution)},
                         timeout=TIMEOUT)
    data = resp.json()
    return data.get("ok", False), data.get("error", "")


def run(base_url=SERVER_URL, max_iterations=MAX_ITERATIONS, timeout=None, controller=None):
    """
    Fetch, solve and submit one challenge.

    Returns:
        bool: True if the issuer accepted the solution.
    """
    challenge, difficulty = fetch_challenge(base_url)
    controller = controller or SessionController(observer=LoggingObserver())
    controller.start(challenge, difficulty, max_iterations)
    try:
        solution = controller.wait(timeout)
    except KeyboardInterrupt:
        controller.stop()
        raise

    if solution is None:
        controller.stop()
        logger.error("no solution found before timeout (nonce %d)", controller.nonce)
        return False

    ok, error = submit_solution(base_url, challenge, solution)
    if ok:
        logger.info("solution %d accepted", solution)
    else:
        logger.error("solution %d rejected: %s", solution, error)
    return ok


def main(argv=None):
    parser = argparse.ArgumentParser(description="Solve a proof-of-work captcha")
    parser.add_argument("--url", default=SERVER_URL, help="issuer base URL")
    parser.add_argument("--max-iterations", type=int, default=MAX_ITERATIONS,
                        help="nonces tried per search step")
    parser.add_argument("--timeout", type=float, default=None,
                        help="give up after this many seconds")
    args = parser.parse_args(argv)

    _log.setup_logging()
    ok = run(args.url, args.max_iterations, args.timeout)
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
