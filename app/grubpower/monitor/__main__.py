"""Entry point of the boot image: ``python -m grubpower.monitor``."""

import logging

from grubpower.config.io import load_config_or_default
from grubpower.core.logging_config import setup_logging
from grubpower.core.paths import DEFAULT_CONFIG_PATH
from grubpower.monitor.session import run_session
from grubpower.utils.formatting import console

logger = logging.getLogger("grubpower.monitor")


def main() -> int:
    """Load the baked-in configuration and run the monitor."""
    setup_logging()
    config = load_config_or_default(DEFAULT_CONFIG_PATH)
    if config.enable_logging:
        setup_logging(log_file=config.log_file)
        logger.info("GrubPower logging started")

    run_session(config, console)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
