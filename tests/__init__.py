"""
Test suite for the Healthcare Plus appointment service.

Contains unit and integration tests for the application's functionality.
"""
import os
import tempfile

# Set environment for testing
os.environ["TESTING"] = "1"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="healthcare-plus-"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")
