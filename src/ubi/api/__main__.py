# src/ubi/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from ubi.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so UBI_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from ubi.api.app import create_app
    from ubi.runtime.campaign_config import apply_campaign_config_to_env, load_campaign_config
    from ubi.runtime.event_logging import configure_structured_logging

    cfg = load_campaign_config()
    configure_structured_logging(cfg.log_level)

    host = os.getenv("UBI_API_HOST", cfg.api_host)
    port = int(os.getenv("UBI_API_PORT", str(cfg.api_port)))

    # mode / campaign id must agree with the loaded file for app + health routes
    apply_campaign_config_to_env(cfg)

    uvicorn.run(create_app(), host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
