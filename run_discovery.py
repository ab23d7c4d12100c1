"""Convenience script for running a discovery sweep locally."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the feedscout package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from feedscout.config import AppConfig, DiscoverySettings  # noqa: E402  (import after path setup)
from feedscout.services.discoverer import build_discoverer  # noqa: E402
from feedscout.services.sweep import run_sweep  # noqa: E402


def main() -> None:
    """Load the site configuration and discover articles for every due site.

    Site names given on the command line restrict the sweep to those sites.
    """

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    try:
        config = AppConfig.from_file()
        settings = DiscoverySettings.from_env()
    except FileNotFoundError as exc:
        logging.error("Could not load site configuration: %s", exc)
        sys.exit(1)
    except ValueError as exc:
        logging.error("Invalid configuration: %s", exc)
        sys.exit(1)

    sites = config.sites
    requested = sys.argv[1:]
    if requested:
        sites = [site for site in config.sites if site.site_id in {name.lower() for name in requested}]
        if not sites:
            logging.error("No configured site matches %s", ", ".join(requested))
            sys.exit(1)

    discoverer = build_discoverer(config, settings=settings)
    report = run_sweep(
        sites, discoverer, max_workers=settings.max_workers, force=bool(requested)
    )

    print(json.dumps([outcome.model_dump() for outcome in report.outcomes], indent=2))
    if report.errors:
        sys.exit(2)


if __name__ == "__main__":
    main()
