"""
Auth0 client used to resolve application owners' email addresses.
"""

import logging

from src.services.http_client import HTTPClient
from src.utils.exceptions import Auth0TokenError, Auth0UserError, UserNotFoundError

logger = logging.getLogger(__name__)

AUTH0_USERS_ENDPOINT = "api/v2/users"
AUTH0_TOKEN_ENDPOINT = "oauth/token"
AUTH0_AUDIENCE_ENDPOINT = "api/v2/"


class Auth0Client:
    def __init__(self, http: HTTPClient, domain: str, client_id: str, client_secret: str):
        self.http = http
        self.domain = domain.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret

    async def get_mgmt_token(self) -> str:
        """
        Fetch a fresh management API token with the client-credentials grant.

        Raises:
            Auth0TokenError: non-200 response or a body without ``access_token``
        """
        response = await self.http.post_form(
            f"{self.domain}/{AUTH0_TOKEN_ENDPOINT}",
            {
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "audience": f"{self.domain}/{AUTH0_AUDIENCE_ENDPOINT}",
            },
        )
        if response.status_code != 200:
            raise Auth0TokenError()

        token = response.json().get("access_token")
        if not token:
            raise Auth0TokenError("Auth0 token response had no access_token")

        return token

    async def get_user_email(self, user_id: str, token: str) -> str:
        """
        Look up one user's email address by internal user id.

        Raises:
            Auth0UserError: non-200 response
            UserNotFoundError: no user, or a user without an email
        """
        response = await self.http.get(
            f"{self.domain}/{AUTH0_USERS_ENDPOINT}",
            params={
                "q": f"user_id:*{user_id}",
                "fields": "email",
                "include_fields": "true",
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code != 200:
            raise Auth0UserError()

        users = response.json()
        if users and users[0].get("email"):
            return users[0]["email"]

        raise UserNotFoundError(user_id)
