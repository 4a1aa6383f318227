"""Venue adapters and the registry the coordinator routes through."""

from __future__ import annotations

from typing import Dict

import requests

from venue_exec.config import get_bybit_config, get_hyperliquid_config, get_solana_config
from venue_exec.contracts import Venue
from venue_exec.venues.base import ExecutionContext, Outcome, VenueAdapter
from venue_exec.venues.bybit import BybitAdapter
from venue_exec.venues.http import JsonHttpClient
from venue_exec.venues.hyperliquid import HyperliquidAdapter
from venue_exec.venues.solana import SolanaJupiterAdapter


def build_default_adapters(session: requests.Session | None = None) -> Dict[Venue, VenueAdapter]:
    """One adapter per venue, sharing a single connection pool."""
    session = session or requests.Session()
    bybit_cfg = get_bybit_config()
    hl_cfg = get_hyperliquid_config()
    sol_cfg = get_solana_config()
    return {
        Venue.BYBIT: BybitAdapter(
            bybit_cfg, http=JsonHttpClient(timeout=bybit_cfg.timeout_seconds, session=session)
        ),
        Venue.HYPERLIQUID: HyperliquidAdapter(
            hl_cfg, http=JsonHttpClient(timeout=hl_cfg.timeout_seconds, session=session)
        ),
        Venue.SOLANA_JUPITER: SolanaJupiterAdapter(
            sol_cfg, http=JsonHttpClient(timeout=sol_cfg.timeout_seconds, session=session)
        ),
    }


__all__ = [
    "BybitAdapter",
    "ExecutionContext",
    "HyperliquidAdapter",
    "Outcome",
    "SolanaJupiterAdapter",
    "VenueAdapter",
    "build_default_adapters",
]
