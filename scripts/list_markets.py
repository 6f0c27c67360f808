"""Print the active Pendle markets on the configured chain."""

from src.core import load_settings, setup_logging
from src.pendle import PendleClient


def main() -> None:
    setup_logging()
    cfg = load_settings()
    client = PendleClient(cfg.pendle, chain_id=cfg.chain.chain_id)

    markets = client.get_active_markets()
    print(f"{len(markets)} active markets on chain {cfg.chain.chain_id}:")
    for m in markets:
        print(f"  {m.name or '(unnamed)':<28} market={m.address}  pt={m.pt}  yt={m.yt}  expiry={m.expiry}")


if __name__ == "__main__":
    main()
