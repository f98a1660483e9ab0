import logging
import os

from loguru import logger

# Intercept the configuration pipeline at the root of test discovery.
# This strictly isolates the physical database, ensuring un-mocked sessions
# operate exclusively in ephemeral memory.
os.environ["SQLITE_DB_PATH"] = ":memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SETUP_KEY", "test-setup-key")
os.environ.setdefault("INITIAL_ADMIN_EMAIL", "admin@acme.com")
os.environ.setdefault("INITIAL_ADMIN_PASSWORD", "admin-password")
# Minimum bcrypt cost keeps hashing-heavy suites fast
os.environ["BCRYPT_ROUNDS"] = "4"

# Globally mute application logs during testing to prevent terminal noise
# from unhappy-path testing (403s, expired invitations, etc.)
logger.disable("src")

logging.getLogger("asyncio").setLevel(logging.ERROR)
logging.getLogger("passlib").setLevel(logging.ERROR)
