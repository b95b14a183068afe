"""Operator authentication."""
import logging
from typing import Optional, Tuple

from flask_jwt_extended import create_access_token

from campus_access.models.user import User
from campus_access.utils.helpers import utcnow

logger = logging.getLogger(__name__)

class AuthService:
    @staticmethod
    def login(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate user and return an access token."""
        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user or not user.check_password(password):
            logger.info("Failed login for %s", email)
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is deactivated"

        user.last_login = utcnow()
        user.save()

        access_token = create_access_token(
            identity=str(user.id),
            additional_claims={'role': user.role.value}
        )

        return {
            "access_token": access_token,
            "user": user.to_dict()
        }, None
