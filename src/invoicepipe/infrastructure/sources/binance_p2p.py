# SPDX-License-Identifier: Apache-2.0
"""Binance P2P order history connector."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import random
import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from invoicepipe.domain.entities import Order
from invoicepipe.domain.errors import InvoicePipeError, OrderSourceError
from invoicepipe.domain.ports import IOrderSource
from invoicepipe.domain.value_objects import TradeDirection
from invoicepipe.security.mask import safe_for_log

ORDER_HISTORY_PATH = "/sapi/v1/c2c/orderMatch/listUserOrderHistory"
PAGE_SIZE = 100
MAX_PAGES = 50
COMPLETED = "COMPLETED"


class BinanceP2POrderSource(IOrderSource):
    """Fetches completed P2P orders from the signed Binance C2C endpoint.

    Args:
        api_key: Binance API key, sent in ``X-MBX-APIKEY``
        secret_key: Secret used to HMAC-sign the query string
        tz: Timezone that decides each order's calendar date
        base_url: REST API root
        client: Optional preconfigured ``httpx.AsyncClient``
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        tz: tzinfo = timezone.utc,
        base_url: str = "https://api.binance.com",
        timeout: float = 10.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not secret_key:
            raise ValueError("Binance API key and secret are required")
        self.api_key = api_key
        self.secret_key = secret_key
        self.tz = tz
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._client = client
        self.log = logging.getLogger(self.__class__.__name__)

    # ---------- signing ----------
    def sign(self, query_string: str) -> str:
        return hmac.new(
            self.secret_key.encode(), query_string.encode(), hashlib.sha256
        ).hexdigest()

    def build_query(self, params: Dict[str, Any]) -> str:
        params = dict(params, timestamp=int(time.time() * 1000))
        query = urlencode(params)
        return f"{query}&signature={self.sign(query)}"

    # ---------- fetch ----------
    async def fetch(
        self, since_days: int, direction: Optional[TradeDirection] = TradeDirection.SELL
    ) -> List[Order]:
        if since_days < 1:
            raise ValueError(f"since_days must be positive: {since_days}")

        end = datetime.now(timezone.utc)
        start = end - timedelta(days=since_days)
        directions = [TradeDirection(direction)] if direction is not None else list(TradeDirection)

        orders: List[Order] = []
        if self._client is not None:
            for side in directions:
                orders.extend(await self._fetch_side(self._client, side, start, end))
        else:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                for side in directions:
                    orders.extend(await self._fetch_side(client, side, start, end))

        orders.sort(key=lambda o: o.created_at)
        return orders

    async def _fetch_side(
        self, client: httpx.AsyncClient, side: TradeDirection, start: datetime, end: datetime
    ) -> List[Order]:
        orders: List[Order] = []
        for page in range(1, MAX_PAGES + 1):
            body = await self._request(
                client,
                {
                    "tradeType": side.value,
                    "startTimestamp": int(start.timestamp() * 1000),
                    "endTimestamp": int(end.timestamp() * 1000),
                    "page": page,
                    "rows": PAGE_SIZE,
                },
            )
            rows = body.get("data") or []
            orders.extend(self.parse_orders(rows))
            if len(rows) < PAGE_SIZE:
                break
        else:
            self.log.warning("Stopped after %d pages of %s orders", MAX_PAGES, side.value)

        self.log.info("Fetched %d completed %s orders", len(orders), side.value)
        return orders

    async def _request(self, client: httpx.AsyncClient, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"X-MBX-APIKEY": self.api_key, "Accept": "application/json"}
        retries = 0
        while True:
            url = f"{self.base_url}{ORDER_HISTORY_PATH}?{self.build_query(params)}"
            try:
                r = await client.get(url, headers=headers)
            except httpx.HTTPError as e:
                raise OrderSourceError(
                    safe_for_log(f"Binance request failed: {e}", self.api_key, self.secret_key)
                ) from e

            if self.should_retry(r.status_code):
                retries += 1
                if retries > self.max_retries:
                    raise OrderSourceError(
                        f"Binance request exceeded retry limit (HTTP {r.status_code})"
                    )
                sleep = self._retry_after(r)
                if sleep is None:
                    sleep = self._backoff(retries)
                self.log.warning("Retry %d sleeping %.2fs", retries, sleep)
                await asyncio.sleep(sleep)
                continue

            try:
                body = r.json()
            except ValueError as e:
                raise OrderSourceError(
                    f"Failed to parse Binance response as JSON (HTTP {r.status_code})"
                ) from e

            if r.status_code >= 400:
                message = body.get("msg") if isinstance(body, dict) else None
                raise OrderSourceError(
                    safe_for_log(
                        f"Binance API error ({r.status_code}): {message or r.text[:200]}",
                        self.api_key,
                        self.secret_key,
                    )
                )
            if not isinstance(body, dict):
                raise OrderSourceError("Unexpected Binance response shape")
            return body

    # ---------- parsing ----------
    def parse_orders(self, rows: List[Dict[str, Any]]) -> List[Order]:
        """Convert completed order rows; other statuses are skipped."""
        orders: List[Order] = []
        for row in rows:
            if row.get("orderStatus") != COMPLETED:
                continue
            try:
                orders.append(self.parse_order(row))
            except (InvoicePipeError, KeyError, TypeError, ValueError) as e:
                self.log.warning("Skipping malformed order %s: %s", row.get("orderNumber"), e)
        return orders

    def parse_order(self, row: Dict[str, Any]) -> Order:
        created_at = datetime.fromtimestamp(int(row["createTime"]) / 1000, tz=timezone.utc)
        return Order.from_trade(
            order_number=str(row["orderNumber"]),
            quantity=str(row["amount"]),
            total_price=str(row["totalPrice"]),
            asset=row["asset"],
            fiat=row["fiat"],
            direction=row["tradeType"],
            created_at=created_at,
            tz=self.tz,
            buyer_nickname=row.get("buyerNickname"),
            seller_nickname=row.get("sellerNickname"),
        )

    # ---------- helpers ----------
    @staticmethod
    def should_retry(status: int) -> bool:
        return status in {429, 500, 502, 503, 504}

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        try:
            return float(value) if value else None
        except ValueError:
            return None

    @staticmethod
    def _backoff(attempt: int) -> float:
        base = 1.5**attempt
        return base + random.uniform(0, 0.2 * base)


__all__ = ["BinanceP2POrderSource"]
