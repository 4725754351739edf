import pathlib
import sys

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from speechstream.config import Settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key=SecretStr("test"),
        system_prompt="You are a test assistant.",
        history_limit=4,
    )
