"""Tests for bearer-token authorization."""

from jd_refiner.auth import StaticTokenAuthorizer


class TestStaticTokenAuthorizer:
    """Tests for StaticTokenAuthorizer."""

    def test_from_string(self):
        authorizer = StaticTokenAuthorizer.from_string("abc:user-1, def:user-2")

        assert authorizer.user_for_token("abc") == "user-1"
        assert authorizer.user_for_token("def") == "user-2"

    def test_malformed_pairs_ignored(self):
        authorizer = StaticTokenAuthorizer.from_string("abc,:user,tok:,good:user-3,")
        assert authorizer.tokens == {"good": "user-3"}

    def test_unknown_or_missing_token(self):
        authorizer = StaticTokenAuthorizer({"abc": "user-1"})

        assert authorizer.user_for_token("nope") is None
        assert authorizer.user_for_token(None) is None
        assert authorizer.user_for_token("") is None

    def test_is_authorized(self):
        authorizer = StaticTokenAuthorizer({"abc": "user-1"})

        assert authorizer.is_authorized("abc", "user-1")
        assert not authorizer.is_authorized("abc", "user-2")
        assert not authorizer.is_authorized(None, "user-1")

    def test_empty_config(self):
        assert StaticTokenAuthorizer.from_string("").tokens == {}
        assert StaticTokenAuthorizer.from_string(None).tokens == {}
