"""
Shared fixtures for the test suite.
"""

import pytest

from job_engine.session import new_session_with_string_id
from tests.helpers import RESULT_NAMES


@pytest.fixture
def root(tmp_path):
    return tmp_path / "jobs"


@pytest.fixture
def session(root):
    return new_session_with_string_id(root, RESULT_NAMES)
