from __future__ import annotations

import logging
from typing import Any, Optional, Type
from types import TracebackType

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from ...application.dtos import (
    CheckoutCompletionRequestDTO,
    CheckoutCompletionResponseDTO,
    MerchantPlanDTO,
    UserSubscriptionDTO,
    WalletBalanceDTO,
)
from ...domain.entities import CheckoutSession
from ...domain.errors import (
    BackendError,
    BackendUnauthorizedError,
    SessionNotFoundError,
)
from ..http.http_client import AccessTokenProvider, AsyncHttpClient
from ..timing import log_timing

logger = logging.getLogger(__name__)

_PLAN_LIST = TypeAdapter(list[MerchantPlanDTO])
_SUBSCRIPTION_LIST = TypeAdapter(list[UserSubscriptionDTO])


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class AsyncBackendClient:
    """Asynchronous client for the backend REST API.

    Methods are bound to the application DTOs; HTTP and payload failures are
    translated to ``BackendError`` subclasses.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        access_token_provider: Optional[AccessTokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(
            base_url,
            timeout=timeout,
            access_token_provider=access_token_provider,
            transport=transport,
        )

    async def _get(self, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._http.get(path, **kwargs)
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise self._status_error(path, e) from e
        except httpx.RequestError as e:
            raise BackendError(f"Could not connect to backend: {e}") from e
        except ValueError as e:
            raise BackendError(f"Invalid JSON from backend for {path}") from e

    async def _post(self, path: str, dto: BaseModel) -> Any:
        try:
            resp = await self._http.post(path, json=dto.model_dump(by_alias=True))
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise self._status_error(path, e) from e
        except httpx.RequestError as e:
            raise BackendError(f"Could not connect to backend: {e}") from e
        except ValueError as e:
            raise BackendError(f"Invalid JSON from backend for {path}") from e

    @staticmethod
    def _status_error(path: str, e: httpx.HTTPStatusError) -> BackendError:
        status = e.response.status_code
        message = f"{path} failed ({status}): {_error_message(e.response)}"
        if status == 401:
            return BackendUnauthorizedError(message, status_code=status)
        return BackendError(message, status_code=status)

    @staticmethod
    def _parse(adapter: Any, data: Any, what: str) -> Any:
        try:
            if isinstance(adapter, type) and issubclass(adapter, BaseModel):
                return adapter.model_validate(data)
            return adapter.validate_python(data)
        except ValidationError as e:
            raise BackendError(f"Invalid {what} data from backend: {e}") from e

    # Plan catalogue

    @log_timing("backend.search_plans")
    async def search_plans(
        self, *, category: Optional[str] = None, search: Optional[str] = None
    ) -> list[MerchantPlanDTO]:
        params = {
            key: value
            for key, value in (("category", category), ("search", search))
            if value
        }
        data = await self._get("/merchants/plans/search", params=params)
        return self._parse(_PLAN_LIST, data, "plan list")

    async def get_plan(self, plan_pda: str) -> MerchantPlanDTO:
        data = await self._get(f"/merchants/plans/{plan_pda}")
        return self._parse(MerchantPlanDTO, data, "plan")

    # Subscription history

    @log_timing("backend.get_user_subscriptions")
    async def get_user_subscriptions(self, wallet: str) -> list[UserSubscriptionDTO]:
        data = await self._get(f"/subscriptions/user/{wallet}")
        return self._parse(_SUBSCRIPTION_LIST, data, "subscription list")

    async def get_subscription(self, subscription_pda: str) -> dict[str, Any]:
        return await self._get(f"/subscriptions/{subscription_pda}")

    async def get_upcoming_payments(self, wallet: str) -> list[dict[str, Any]]:
        return await self._get(f"/subscriptions/user/{wallet}/upcoming")

    async def get_wallet_summary(self, wallet_pda: str) -> WalletBalanceDTO:
        data = await self._get(f"/subscriptions/wallet/{wallet_pda}/balance")
        return self._parse(WalletBalanceDTO, data, "wallet balance")

    async def get_user_stats(self, wallet: str) -> dict[str, Any]:
        return await self._get(f"/subscriptions/user/{wallet}/stats")

    # Checkout

    @log_timing("backend.get_checkout_session")
    async def get_checkout_session(self, session_id: str) -> CheckoutSession:
        try:
            data = await self._get(f"/checkout/{session_id}")
        except BackendError as e:
            if e.status_code == 404:
                raise SessionNotFoundError(session_id) from e
            raise
        return self._parse(CheckoutSession, data, "checkout session")

    @log_timing("backend.complete_checkout_session")
    async def complete_checkout_session(
        self, session_id: str, dto: CheckoutCompletionRequestDTO
    ) -> CheckoutCompletionResponseDTO:
        data = await self._post(f"/checkout/{session_id}/complete", dto)
        logger.info("Completed checkout session %s", session_id)
        return self._parse(CheckoutCompletionResponseDTO, data or {}, "checkout completion")

    # Context Manager Support

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncBackendClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
