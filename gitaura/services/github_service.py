from datetime import UTC, datetime, timedelta

import httpx
import structlog
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gitaura.api.schemas.contributions import ContributionSeries, GitHubProfile
from gitaura.core.config import settings
from gitaura.core.exceptions import UpstreamFetchError

logger = structlog.get_logger()

CONTRIBUTIONS_QUERY = """
query($userName: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $userName) {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            contributionCount
            date
          }
        }
      }
    }
  }
}
"""


class GitHubService:
    """Client for the GitHub profile and contribution calendar APIs."""

    def __init__(self) -> None:
        self.base_url = settings.github_api_base_url
        self.graphql_url = settings.github_graphql_url
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": settings.github_user_agent,
        }
        if settings.github_token:
            self.headers["Authorization"] = f"Bearer {settings.github_token}"

    @staticmethod
    def _raise_for_status(response: httpx.Response, username: str) -> None:
        if response.status_code in (403, 429):
            raise UpstreamFetchError(f"GitHub API rate limit exceeded fetching {username}")
        if response.is_error:
            raise UpstreamFetchError(
                f"GitHub API error {response.status_code} fetching {username}"
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=self.headers, **kwargs)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            return await client.post(url, headers=self.headers, **kwargs)

    async def get_user_profile(self, username: str) -> GitHubProfile | None:
        """Fetch public profile attributes. Returns None if the user does not exist."""
        try:
            response = await self._get(f"{self.base_url}/users/{username}")
        except httpx.TransportError as e:
            raise UpstreamFetchError(f"GitHub profile fetch failed for {username}: {e}") from e

        if response.status_code == 404:
            return None
        self._raise_for_status(response, username)
        try:
            return GitHubProfile.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamFetchError(f"Malformed GitHub profile for {username}") from e

    async def get_contributions(
        self,
        username: str,
        now: datetime | None = None,
    ) -> ContributionSeries:
        """Fetch the daily contribution calendar over the trailing window."""
        if not username or not username.strip():
            raise UpstreamFetchError("GitHub username is required")

        now = now or datetime.now(UTC)
        start = now - timedelta(days=settings.contribution_window_days - 1)
        payload = {
            "query": CONTRIBUTIONS_QUERY,
            "variables": {
                "userName": username,
                "from": start.isoformat(),
                "to": now.isoformat(),
            },
        }

        try:
            response = await self._post(self.graphql_url, json=payload)
        except httpx.TransportError as e:
            raise UpstreamFetchError(
                f"GitHub contributions fetch failed for {username}: {e}"
            ) from e

        self._raise_for_status(response, username)
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFetchError(f"Malformed GitHub response for {username}") from e
        if body.get("errors"):
            message = body["errors"][0].get("message", "unknown GraphQL error")
            logger.warning("GitHub GraphQL error", username=username, error=message)
            raise UpstreamFetchError(f"GitHub GraphQL error for {username}: {message}")

        collection = ((body.get("data") or {}).get("user") or {}).get("contributionsCollection")
        if not collection:
            raise UpstreamFetchError(f"No contributions data found for {username}")

        calendar = collection["contributionCalendar"]
        days = [day for week in calendar.get("weeks", []) for day in week.get("contributionDays", [])]
        try:
            return ContributionSeries.model_validate(
                {
                    "totalContributions": calendar.get("totalContributions", 0),
                    "contributionDays": days,
                }
            )
        except ValidationError as e:
            raise UpstreamFetchError(f"Malformed contribution calendar for {username}") from e
