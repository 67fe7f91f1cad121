"""
Environment preparation: output folder and temp-storage folder.

Runs before the log sink exists, so problems go to the module logger and the
warnings channel only.
"""

import logging
import os
import warnings

from feasibility.constants import SYMBOLS, TEMP_DIR_ENV_VAR, get_temp_dir
from feasibility.errors import EnvironmentPreparationError, TempStorageMissingWarning

logger = logging.getLogger(__name__)


def prepare_environment(config, logger=logger):
    """Create the output folder and, if configured but missing, the temp-storage folder."""
    output_folder = config.output_folder
    try:
        os.makedirs(output_folder, exist_ok=True)
    except OSError as e:
        raise EnvironmentPreparationError(
            f"Could not create output folder '{output_folder}': {e}"
        ) from e

    tmp_dir = get_temp_dir()
    if tmp_dir and not os.path.exists(tmp_dir):
        message = f"{TEMP_DIR_ENV_VAR} '{tmp_dir}' not found. Attempting to create folder"
        logger.warning(f"{SYMBOLS['warning']} {message}")
        warnings.warn(message, TempStorageMissingWarning, stacklevel=2)
        try:
            os.makedirs(tmp_dir, exist_ok=True)
        except OSError as e:
            raise EnvironmentPreparationError(
                f"Could not create temp-storage folder '{tmp_dir}': {e}"
            ) from e
