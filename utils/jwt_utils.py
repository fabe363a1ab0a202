"""JWT utilities for bearer session tokens"""

import jwt
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from config import settings


class JWTManager:
    """Handles JWT session token creation and verification"""

    def __init__(self):
        self.secret = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.audience = "session"
        self.issuer = settings.JWT_ISSUER

    def create_session_token(self, user_id: int, role: str, expires_hours: Optional[int] = None) -> Dict:
        """
        Create a session token after a successful login

        Args:
            user_id: The internal user ID
            role: The user's role, embedded for client convenience
            expires_hours: Session token expiry in hours (default: SESSION_EXPIRE_HOURS)

        Returns:
            Dict containing the token, its jti and expiry
        """
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(hours=expires_hours or settings.SESSION_EXPIRE_HOURS)
        jti = uuid.uuid4().hex

        payload = {
            "sub": str(user_id),
            "role": role,
            "jti": jti,
            "iat": now,
            "exp": expires_at,
            "aud": self.audience,
            "iss": self.issuer,
        }

        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return {"token": token, "jti": jti, "issued_at": now, "expires_at": expires_at}

    def verify_session_token(self, token: str) -> Optional[Dict]:
        """
        Verify a session token

        Args:
            token: The session JWT token to verify

        Returns:
            Decoded payload if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["sub", "jti", "exp"]},
            )
            return payload

        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None


# Global instance
jwt_manager = JWTManager()
