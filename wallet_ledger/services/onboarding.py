"""Blacklist screening against the external reputation (Karma) API."""
from dataclasses import dataclass
from typing import Any

import httpx

from wallet_ledger.config import settings
from wallet_ledger.core.logging import app_logger


@dataclass(frozen=True)
class AdmissionResult:
    admissible: bool
    reason: str | None = None


class OnboardingGuard:
    """
    Decides whether a prospective user may be onboarded.

    Fail-closed: the only path to ``admissible=True`` is a successful response
    whose payload does not flag the subject. Timeouts, transport errors,
    non-2xx statuses and unreadable payloads all reject with a reason.
    One attempt per call; registration retries are the caller's business.
    """

    def __init__(
        self,
        api_url: str = settings.BLACKLIST_API_URL,
        api_key: str | None = settings.BLACKLIST_API_KEY,
        timeout_seconds: float = settings.BLACKLIST_API_TIMEOUT_SECONDS,
    ):
        """
        Initialize the guard.

        Args:
            api_url: Reputation endpoint (POST)
            api_key: Optional bearer key for the endpoint
            timeout_seconds: Hard timeout for the whole request
        """
        self.api_url = api_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def check_admissible(self, email: str, phone_number: str) -> AdmissionResult:
        """Screen a registration by email and phone number."""
        return await self._check(
            {"email": email, "phone_number": phone_number},
            default_reason="User found in blacklist",
        )

    async def check_identity(self, identity: str) -> AdmissionResult:
        """Screen an identity number (e.g. BVN or national ID)."""
        return await self._check(
            {"identity": identity},
            default_reason="Identity found in blacklist",
        )

    async def _check(self, payload: dict[str, Any], default_reason: str) -> AdmissionResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()

            if not isinstance(data, dict):
                return self._reject("Invalid response from blacklist verification service")

            karma = data.get("karma")
            flagged_by_karma = isinstance(karma, dict) and karma.get("blacklist") is True
            if data.get("status") == "blacklisted" or flagged_by_karma:
                return self._reject(data.get("reason") or default_reason)

            return AdmissionResult(admissible=True)

        except httpx.TimeoutException:
            return self._reject("Blacklist verification timed out")
        except httpx.HTTPStatusError as e:
            return self._reject(
                f"Blacklist verification service unavailable (status {e.response.status_code})"
            )
        except httpx.RequestError:
            return self._reject("Unable to reach blacklist verification service")
        except ValueError:
            return self._reject("Invalid response from blacklist verification service")
        except Exception as e:
            app_logger.error(f"Unexpected error during blacklist verification: {e!r}")
            return self._reject("Unable to verify blacklist status")

    def _reject(self, reason: str) -> AdmissionResult:
        app_logger.warning(f"Onboarding rejected: {reason}")
        return AdmissionResult(admissible=False, reason=reason)
