"""
tests/test_config.py -- Tests for the Settings validators in core/config.py.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


class TestSecretKey:
    def test_generated_in_debug(self) -> None:
        settings = Settings(debug=True, secret_key="", bcrypt_rounds=4)
        assert len(settings.secret_key) >= 32

    def test_required_in_production(self) -> None:
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(debug=False, secret_key="", bcrypt_rounds=12)

    def test_too_short(self) -> None:
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(debug=True, secret_key="short", bcrypt_rounds=4)


class TestBcryptRounds:
    def test_low_cost_only_in_debug(self) -> None:
        assert Settings(debug=True, secret_key="k" * 32, bcrypt_rounds=4).bcrypt_rounds == 4
        with pytest.raises(ValidationError, match="at least 12"):
            Settings(debug=False, secret_key="k" * 32, bcrypt_rounds=4)

    @pytest.mark.parametrize("rounds", [3, 32])
    def test_out_of_range(self, rounds) -> None:
        with pytest.raises(ValidationError, match="between 4 and 31"):
            Settings(debug=True, secret_key="k" * 32, bcrypt_rounds=rounds)
