import secrets
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.core.config import settings

security: HTTPBasic = HTTPBasic(auto_error=False)


def basic_auth_guard(realm: str | None = None) -> Callable[..., bool]:
    """Build a dependency that checks HTTP Basic credentials against ADMIN_USER / ADMIN_PASSWORD."""
    challenge = f'Basic realm="{realm}"' if realm else "Basic"

    def check_credentials(credentials: HTTPBasicCredentials | None = Depends(dependency=security)) -> bool:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": challenge},
            )

        correct_username: bool = secrets.compare_digest(credentials.username, settings.ADMIN_USER)
        correct_password: bool = secrets.compare_digest(credentials.password, settings.ADMIN_PASSWORD)

        if not (correct_username and correct_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": challenge},
            )
        return True

    return check_credentials
