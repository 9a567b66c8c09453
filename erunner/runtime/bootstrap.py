# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for erunner.

The one-time setup every CLI command goes through before touching the
project:
  1. Validate the environment (Python version)
  2. Configure logging from the global config
  3. Log what we're running on
"""

from pathlib import Path

from erunner.config.schema import GlobalConfig
from erunner.logging.logger import configure_package_logging, get_logger
from erunner.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.

    Raises:
        RuntimeError: If the interpreter is too old.
    """
    check_minimum_python()

    logger = get_logger("erunner.runtime", log_level=config.log_level)

    log_file = Path(config.log_file) if config.log_file is not None else None
    configure_package_logging(config.log_level, log_file)

    system_info = get_system_info()
    logger.debug(
        "erunner bootstrap complete",
        extra={
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "executable_extension": system_info.executable_extension,
        },
    )
