import json

import pytest

from tests.helpers import SAMPLE_INPUT


@pytest.fixture
def sample_input_dict() -> dict:
    return json.loads(SAMPLE_INPUT.read_text(encoding="utf-8"))
