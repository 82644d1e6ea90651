"""
global_vars.py

Shared settings for the proof-of-work captcha. Every value can be
overridden through an environment variable of the same name.
"""

import os

# Port the challenge issuer listens on
SERVER_PORT = int(os.environ.get("SERVER_PORT", 8080))
SERVER_URL = os.environ.get("SERVER_URL", f"http://localhost:{SERVER_PORT}")

# Required count of trailing zero hex digits
DIFFICULTY = int(os.environ.get("DIFFICULTY", 4))

# Trials per search step before progress is reported
MAX_ITERATIONS = int(os.environ.get("MAX_ITERATIONS", 500))

# Pause between search steps, in seconds
STEP_DELAY = float(os.environ.get("STEP_DELAY", 0.001))

# Issued challenges
CHALLENGE_LENGTH = int(os.environ.get("CHALLENGE_LENGTH", 200))
CHALLENGE_TTL = int(os.environ.get("CHALLENGE_TTL", 24 * 60 * 60))

# Challenge store: Redis when USE_REDIS=true or ENV=production, else in-memory
USE_REDIS = os.environ.get("USE_REDIS", "") == "true" or os.environ.get("ENV") == "production"
CHALLENGE_STORAGE = os.environ.get("CHALLENGE_STORAGE", "redis" if USE_REDIS else "local")
REDIS_ADDR = os.environ.get("REDIS_ADDR", "") or "localhost:6379"
REDIS_PASSWORD = os.environ.get("REDIS_PASSWORD", "") or None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
