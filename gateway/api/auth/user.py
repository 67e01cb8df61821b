# gateway/api/auth/user.py
from typing import Optional

from gateway.api.auth.password import verify_password
from gateway.api.utils.logger import write_log


async def authenticate_user(models, email: str, password: str) -> Optional[object]:
    """Local strategy: look the user up by e-mail and check the password."""
    email = (email or "").strip().lower()
    user = await models.users.find_by_email(email)
    write_log({"event": "user_lookup", "email": email, "found": user is not None}, stream="auth")
    if user is None:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user
