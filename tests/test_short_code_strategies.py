"""
Tests for short code generation strategies.
"""
import pytest

from shortlink_app.services.short_code_strategies import (
    URL_SAFE_ALPHABET,
    RandomShortCodeStrategy,
    is_valid_alias
)


class TestRandomStrategy:
    """Test random generation strategy"""

    def test_generates_correct_length(self):
        """Test that the default strategy generates 6-character codes"""
        strategy = RandomShortCodeStrategy()

        code = strategy.generate()

        assert len(code) == 6

    def test_custom_length(self):
        """Test a configured length is honored"""
        strategy = RandomShortCodeStrategy(length=10)

        assert len(strategy.generate()) == 10

    def test_uses_url_safe_alphabet(self):
        """Test every character is URL-safe"""
        strategy = RandomShortCodeStrategy()

        for _ in range(200):
            assert set(strategy.generate()) <= set(URL_SAFE_ALPHABET)

    def test_codes_are_valid_aliases(self):
        """Test generated codes would pass alias validation"""
        strategy = RandomShortCodeStrategy()

        assert is_valid_alias(strategy.generate())

    def test_generates_different_codes(self):
        """Test that random generation produces different codes"""
        strategy = RandomShortCodeStrategy()

        codes = {strategy.generate() for _ in range(100)}

        # 64^6 possibilities, a repeat in 100 draws is practically impossible
        assert len(codes) == 100

    def test_custom_alphabet(self):
        """Test a restricted alphabet"""
        strategy = RandomShortCodeStrategy(length=8, alphabet="ab")

        assert set(strategy.generate()) <= {"a", "b"}

    def test_rejects_zero_length(self):
        """Test invalid lengths are refused up front"""
        with pytest.raises(ValueError):
            RandomShortCodeStrategy(length=0)


class TestAliasValidation:
    """Test custom alias rules"""

    @pytest.mark.parametrize("alias", ["promo", "my-link", "my_link", "A1", "x", "a" * 64])
    def test_valid_aliases(self, alias):
        assert is_valid_alias(alias)

    @pytest.mark.parametrize("alias", ["", "has space", "slash/", "dot.", "émoji", "a?b", "a" * 65])
    def test_invalid_aliases(self, alias):
        assert not is_valid_alias(alias)

    def test_max_length_is_configurable(self):
        """Test the length cap follows the argument"""
        assert is_valid_alias("abcd", max_length=4)
        assert not is_valid_alias("abcde", max_length=4)
