"""Pendle API client — retries, error classification, structured logging."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
import structlog
from pydantic import ValidationError
from requests.exceptions import ConnectionError, HTTPError, ReadTimeout, Timeout
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import PendleApiConfig
from src.core.errors import (
    DataUnavailable,
    PendleAPIError,
    PendleError,
    PendleNetworkError,
    PendleRateLimitError,
)
from src.pendle.models import ActiveMarket, ApyPoint, TradeIntent, TradeKind

log = structlog.get_logger(__name__)

# ── Error classification ───────────────────────────────────────────────


def _classify_http_error(exc: HTTPError) -> PendleRateLimitError | PendleAPIError:
    """Turn a requests HTTPError into our typed hierarchy."""
    response = exc.response
    status = response.status_code if response is not None else None
    msg = str(exc)

    if status == 429:
        retry_after = None
        retry_after_hdr = response.headers.get("Retry-After") if response is not None else None
        if retry_after_hdr is not None:
            try:
                retry_after = float(retry_after_hdr)
            except ValueError:
                pass
        return PendleRateLimitError(msg, status_code=status, retry_after=retry_after)
    return PendleAPIError(msg, status_code=status)


def _classify_and_raise(exc: Exception) -> None:
    """Classify any exception from a Pendle call and raise our typed version."""
    if isinstance(exc, HTTPError):
        raise _classify_http_error(exc) from exc
    if isinstance(exc, (ConnectionError, Timeout, ReadTimeout, OSError)):
        raise PendleNetworkError(str(exc)) from exc
    raise PendleAPIError(str(exc)) from exc


# ── Retry decorator ────────────────────────────────────────────────────

_RETRYABLE = (PendleNetworkError, PendleRateLimitError)

_retry = retry(
    retry=retry_if_exception_type(_RETRYABLE),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)

_MIN_OUT_KEYS = ("minTokenOut", "minLpOut", "minOut")


def _rows(data: Any, what: str) -> list[dict[str, Any]]:
    """The `data` payload as a list of objects; anything else is unusable."""
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise DataUnavailable(f"{what} payload is not a list of objects")
    return data


def _csv_rows(text: Any, what: str) -> list[dict[str, str]]:
    """Parse the CSV `results` body the windowed endpoints return."""
    if not isinstance(text, str):
        raise DataUnavailable(f"{what} results are not CSV text")
    return list(csv.DictReader(io.StringIO(text.strip())))


def _parse_time(value: str) -> datetime:
    """CSV time cell: unix seconds or ISO-8601."""
    value = value.strip()
    if value.isdigit():
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ── Client ─────────────────────────────────────────────────────────────


class PendleClient:
    """Pricing, APY history and SDK quote building against the Pendle API.

    Every call blocks until the response arrives.  The SDK endpoints only
    build calldata (nothing is submitted), so they share the read retry
    policy.
    """

    def __init__(
        self,
        cfg: PendleApiConfig,
        chain_id: int,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = cfg.base_url.rstrip("/")
        self._timeout = cfg.timeout_secs
        self._chain_id = chain_id
        self._session = session or requests.Session()
        self._log = log.bind(client="pendle", chain_id=chain_id)

    # ── transport ────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        field: str = "data",
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method, url, params=params, json=json, timeout=self._timeout,
            )
            response.raise_for_status()
        except Exception as exc:
            self._log.error("pendle_request_failed", method=method, path=path, error=str(exc))
            _classify_and_raise(exc)

        try:
            payload = response.json()
        except ValueError as exc:
            raise PendleAPIError(f"{method} {path} returned invalid JSON") from exc

        if not isinstance(payload, dict) or payload.get(field) is None:
            raise DataUnavailable(f"{method} {path} returned no {field}")
        return payload[field]

    # ── pricing ──────────────────────────────────────────────────────

    @_retry
    def get_token_prices(self, addresses: list[str]) -> dict[str, float]:
        """Current USD prices keyed by lower-cased address.

        Addresses the API does not price are simply absent.
        """
        if not addresses:
            return {}
        self._log.info("fetching_prices", count=len(addresses))
        rows = self._request(
            "GET",
            f"/v1/{self._chain_id}/assets/prices",
            params={"addresses": ",".join(addresses)},
        )
        prices: dict[str, float] = {}
        for row in _rows(rows, "prices"):
            address, price = row.get("address"), row.get("price")
            if not address or price is None:
                continue
            try:
                prices[str(address).lower()] = float(price)
            except (TypeError, ValueError):
                self._log.warning("price_row_skipped", address=address, price=str(price))
        self._log.info("prices_fetched", priced=len(prices), requested=len(addresses))
        return prices

    def get_historical_prices(
        self,
        addresses: list[str],
        at: datetime,
        *,
        window: timedelta = timedelta(hours=12),
    ) -> dict[str, float]:
        """Hourly close nearest to ``at`` for each address, keyed lower-case.

        Looks ``window`` either side of ``at``.  An address whose series
        cannot be fetched or parsed is logged and left out.
        """
        prices: dict[str, float] = {}
        for address in addresses:
            try:
                close = self._nearest_close(address, at, window)
            except (PendleError, DataUnavailable) as exc:
                self._log.warning("historical_price_unavailable", address=address, error=str(exc))
                continue
            if close is not None:
                prices[address.lower()] = close
        self._log.info(
            "historical_prices_fetched", at=_iso(at), priced=len(prices), requested=len(addresses),
        )
        return prices

    @_retry
    def _nearest_close(self, address: str, at: datetime, window: timedelta) -> float | None:
        text = self._request(
            "GET",
            f"/v4/{self._chain_id}/prices/{address}/ohlcv",
            params={
                "timeFrame": "hour",
                "timestampStart": _iso(at - window),
                "timestampEnd": _iso(at + window),
            },
            field="results",
        )
        try:
            candles = [(_parse_time(r["time"]), float(r["close"])) for r in _csv_rows(text, "ohlcv")]
        except (KeyError, TypeError, ValueError) as exc:
            raise DataUnavailable(f"malformed OHLCV for {address}: {exc}") from exc
        if not candles:
            return None
        return min(candles, key=lambda c: abs((c[0] - at).total_seconds()))[1]

    @_retry
    def get_apy_history(
        self,
        market_address: str,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        time_frame: str = "day",
    ) -> list[ApyPoint]:
        """APY history for a market.

        Without a window the latest series is returned and its first
        element is the most recent point.  With ``start`` / ``end`` the
        windowed CSV series is returned in the order the API sends it.
        """
        path = f"/v2/{self._chain_id}/markets/{market_address}/apy-history"
        self._log.info("fetching_apy_history", market=market_address, windowed=bool(start or end))
        try:
            if start is None and end is None:
                rows = _rows(self._request("GET", path), "apy history")
            else:
                params: dict[str, Any] = {"timeFrame": time_frame}
                if start is not None:
                    params["timestampStart"] = _iso(start)
                if end is not None:
                    params["timestampEnd"] = _iso(end)
                rows = _csv_rows(
                    self._request("GET", path, params=params, field="results"), "apy history",
                )
            points = [ApyPoint.model_validate(r) for r in rows]
        except ValidationError as exc:
            raise DataUnavailable(f"malformed APY history for {market_address}: {exc}") from exc
        self._log.info("apy_history_fetched", market=market_address, points=len(points))
        return points

    @_retry
    def get_market_data(self, market_address: str, at: datetime | None = None) -> dict[str, Any]:
        """Full market data (APYs, liquidity, rewards), optionally as of ``at``."""
        params = {"timestamp": _iso(at)} if at is not None else None
        data = self._request(
            "GET", f"/v2/{self._chain_id}/markets/{market_address}/data", params=params,
        )
        if not isinstance(data, dict):
            raise DataUnavailable(f"market data for {market_address} is not an object")
        return data

    @_retry
    def get_active_markets(self) -> list[ActiveMarket]:
        self._log.info("fetching_active_markets")
        rows = self._request("GET", f"/v1/{self._chain_id}/markets/active")
        try:
            return [ActiveMarket.model_validate(r) for r in _rows(rows, "active markets")]
        except ValidationError as exc:
            raise DataUnavailable(f"malformed active-markets listing: {exc}") from exc

    # ── SDK quote builders ───────────────────────────────────────────

    @_retry
    def build_swap(
        self,
        market_address: str,
        receiver: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        data = self._request(
            "POST",
            f"/v1/sdk/{self._chain_id}/markets/{market_address}/swap",
            json={
                "receiver": receiver,
                "slippage": slippage_pct / 100,
                "tokenIn": token_in,
                "tokenOut": token_out,
                "amountIn": str(amount_in),
                "enableAggregator": True,
            },
        )
        return self._to_intent(TradeKind.SWAP, market_address, token_in, token_out, amount_in, data)

    @_retry
    def build_add_liquidity(
        self,
        market_address: str,
        receiver: str,
        token_in: str,
        amount_in: int,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        data = self._request(
            "POST",
            f"/v1/sdk/{self._chain_id}/markets/{market_address}/add-liquidity",
            json={
                "receiver": receiver,
                "slippage": slippage_pct / 100,
                "tokenIn": token_in,
                "amountIn": str(amount_in),
            },
        )
        return self._to_intent(
            TradeKind.ADD_LIQUIDITY, market_address, token_in, market_address, amount_in, data,
        )

    @_retry
    def build_remove_liquidity(
        self,
        market_address: str,
        receiver: str,
        lp_amount_in: int,
        token_out: str,
        slippage_pct: float = 0.5,
    ) -> TradeIntent:
        data = self._request(
            "POST",
            f"/v1/sdk/{self._chain_id}/markets/{market_address}/remove-liquidity",
            json={
                "receiver": receiver,
                "slippage": slippage_pct / 100,
                "tokenOut": token_out,
                "amountIn": str(lp_amount_in),
            },
        )
        return self._to_intent(
            TradeKind.REMOVE_LIQUIDITY, market_address, market_address, token_out, lp_amount_in, data,
        )

    def _to_intent(
        self,
        kind: TradeKind,
        market_address: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        data: dict[str, Any],
    ) -> TradeIntent:
        if not isinstance(data, dict):
            raise DataUnavailable(f"{kind.value} quote for {market_address} is not an object")
        min_out = next((data[k] for k in _MIN_OUT_KEYS if data.get(k) is not None), None)
        if min_out is None:
            raise DataUnavailable(f"{kind.value} quote for {market_address} has no min output")

        try:
            intent = self._parse_intent(
                kind, market_address, token_in, token_out, amount_in, data, min_out,
            )
        except (TypeError, ValueError) as exc:
            raise DataUnavailable(f"malformed {kind.value} quote for {market_address}: {exc}") from exc
        self._log.info(
            "quote_built",
            kind=kind.value,
            market=market_address,
            amount_in=str(amount_in),
            min_out=str(intent.min_out),
        )
        return intent

    @staticmethod
    def _parse_intent(
        kind: TradeKind,
        market_address: str,
        token_in: str,
        token_out: str,
        amount_in: int,
        data: dict[str, Any],
        min_out: Any,
    ) -> TradeIntent:
        return TradeIntent(
            kind=kind,
            market_address=market_address,
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            call_data=data.get("callData", ""),
            router=data.get("router", ""),
            target=data.get("target", ""),
            value=int(data.get("value") or 0),
            min_out=int(min_out),
            gas=int(data["gas"]) if data.get("gas") else None,
        )
