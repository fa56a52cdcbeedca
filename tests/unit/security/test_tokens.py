"""Unit tests for security/tokens.py"""

from notecollab.security.tokens import generate_token, tokens_match


def test_generated_tokens_are_url_safe_and_unique():
    tokens = {generate_token() for _ in range(50)}
    assert len(tokens) == 50
    for token in tokens:
        assert len(token) >= 40
        assert all(c.isalnum() or c in "-_" for c in token)


def test_tokens_match_only_on_equal_values():
    token = generate_token()
    assert tokens_match(token, token)
    assert not tokens_match(token, token + "x")
    assert not tokens_match(token, generate_token())


def test_missing_tokens_never_match():
    assert not tokens_match(None, None)
    assert not tokens_match(None, "abc")
    assert not tokens_match("abc", None)
    assert not tokens_match("", "")
