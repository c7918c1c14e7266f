from __future__ import annotations

import json
import time
from typing import Any

import httpx
from loguru import logger

from kim_paths.core.constants.base import DEFAULT_HTTP_TIMEOUT
from kim_paths.core.constants.kim import KIM_SUBGRAPH_URL
from kim_paths.core.errors import TelemetryUnavailable

NATIVE_PRICE_QUERY = """
query NativePrice {
  bundles {
    maticPriceUSD
  }
}
"""

POOL_DAY_FEES_QUERY = """
query PoolDayFees($pool: String!) {
  poolDayDatas(where: { pool: $pool }, orderBy: date, orderDirection: desc, first: 1) {
    feesUSD
  }
}
"""


class KimSubgraphClient:
    """Fee and price telemetry from the KIM Algebra subgraph."""

    def __init__(
        self,
        *,
        subgraph_url: str = KIM_SUBGRAPH_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.subgraph_url = str(subgraph_url)
        self.client = client
        self.headers = {"Content-Type": "application/json"}

    async def _post(
        self, *, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        started = time.perf_counter()
        try:
            if self.client is not None:
                resp = await self.client.post(
                    self.subgraph_url, headers=self.headers, json=payload
                )
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
                ) as client:
                    resp = await client.post(
                        self.subgraph_url, headers=self.headers, json=payload
                    )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL, json.JSONDecodeError) as exc:
            raise TelemetryUnavailable(
                f"Subgraph request failed: {exc}", cause=exc
            ) from exc
        finally:
            logger.debug(
                f"KIM subgraph query took {time.perf_counter() - started:.3f}s"
            )

        if not isinstance(body, dict):
            raise TelemetryUnavailable("Subgraph returned a non-object response")
        if body.get("errors"):
            raise TelemetryUnavailable(f"Subgraph errors: {body['errors']}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise TelemetryUnavailable("Subgraph response has no data")
        return data

    async def get_native_price_usd(self) -> float:
        data = await self._post(query=NATIVE_PRICE_QUERY)
        bundles = data.get("bundles")
        if not bundles:
            raise TelemetryUnavailable("Subgraph returned no price bundle")
        try:
            return float(bundles[0]["maticPriceUSD"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise TelemetryUnavailable(
                f"Malformed native price bundles: {bundles}", cause=exc
            ) from exc

    async def get_pool_day_fees_usd(self, pool_address: str) -> float:
        """Fees earned by the pool over its most recent day, in USD.

        Returns 0.0 when the subgraph has no day data for the pool yet.
        """
        data = await self._post(
            query=POOL_DAY_FEES_QUERY,
            variables={"pool": str(pool_address).lower()},
        )
        day_datas = data.get("poolDayDatas") or []
        if not day_datas:
            return 0.0
        try:
            return float(day_datas[0]["feesUSD"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise TelemetryUnavailable(
                f"Malformed pool day data: {day_datas}", cause=exc
            ) from exc
