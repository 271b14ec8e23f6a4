"""Tests for auth utility functions."""
import pytest
from datetime import timedelta


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password(self):
        """Test password hashing."""
        from app.utils.auth import hash_password

        password = "mysecretpassword123"
        hashed = hash_password(password)

        # Should return a bcrypt hash
        assert hashed.startswith("$2b$")
        assert len(hashed) > 50

        # Same password should produce different hashes (due to salt)
        hashed2 = hash_password(password)
        assert hashed != hashed2

    def test_verify_password_correct(self):
        """Test password verification with correct password."""
        from app.utils.auth import hash_password, verify_password

        hashed = hash_password("mysecretpassword123")

        assert verify_password("mysecretpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        """Test password verification with incorrect password."""
        from app.utils.auth import hash_password, verify_password

        hashed = hash_password("mysecretpassword123")

        assert verify_password("wrongpassword", hashed) is False
        assert verify_password("", hashed) is False


class TestJWTTokens:
    """Tests for JWT token functions."""

    def test_token_round_trip_carries_role(self):
        """Test that a token decodes to its subject and role."""
        from app.utils.auth import create_access_token, verify_access_token

        token = create_access_token(user_id="user123", role="psychologist")

        claims = verify_access_token(token)
        assert claims["sub"] == "user123"
        assert claims["role"] == "psychologist"
        assert "exp" in claims

    def test_verify_access_token_invalid(self):
        """Test verifying a malformed token."""
        from jose import JWTError
        from app.utils.auth import verify_access_token

        with pytest.raises(JWTError):
            verify_access_token("invalid.token.here")

    def test_verify_access_token_expired(self):
        """Test verifying an expired token."""
        from jose import JWTError
        from app.utils.auth import create_access_token, verify_access_token

        token = create_access_token(
            user_id="user123", role="educator", expires_delta=timedelta(seconds=-1),
        )

        with pytest.raises(JWTError):
            verify_access_token(token)

    def test_verify_access_token_wrong_secret(self):
        """Test that a token signed with another secret is rejected."""
        from jose import JWTError, jwt
        from app.config import settings
        from app.utils.auth import verify_access_token

        token = jwt.encode(
            {"sub": "user123", "role": "admin"}, "not-the-secret", algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(JWTError):
            verify_access_token(token)

    def test_verify_access_token_missing_role(self):
        """Test that tokens without a role claim are rejected."""
        from jose import JWTError, jwt
        from app.config import settings
        from app.utils.auth import verify_access_token

        token = jwt.encode({"sub": "user123"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        with pytest.raises(JWTError, match="role"):
            verify_access_token(token)
