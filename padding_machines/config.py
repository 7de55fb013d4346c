#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Environment configuration and logging setup for the generator CLI
"""

import os
import sys
import logging
from typing import Any, Dict, Optional

from .emitter import OUTPUT_FORMATS

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

VALID_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL
}


def configure_logging(level: Optional[str] = None) -> int:
    """
    Configure logging to stderr.

    The level comes from ``level`` or PADMACH_LOG_LEVEL and defaults to INFO
    if neither is set or the value is invalid.

    Returns:
        The numeric log level in effect
    """
    level_str = (level or os.environ.get("PADMACH_LOG_LEVEL", "INFO")).upper()
    log_level = VALID_LOG_LEVELS.get(level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        stream=sys.stderr
    )
    logging.getLogger().setLevel(log_level)
    if level_str not in VALID_LOG_LEVELS:
        logger.warning(f"Unknown log level {level_str}, using INFO.")
    logger.debug(f"Log level set to {logging.getLevelName(log_level)}.")
    return log_level


def parse_env() -> Dict[str, Any]:
    """
    Read and validate PADMACH_* environment variables.
    Returns a dictionary of configuration parameters or terminates the script if invalid.
    """
    seed_str = os.environ.get("PADMACH_SEED", "").strip()
    seed = None
    if seed_str:
        try:
            seed = int(seed_str)
            if seed < 0:
                raise ValueError("Seed must be a non-negative integer")
        except ValueError as e:
            logger.error(f"Invalid value for PADMACH_SEED: {seed_str}. {e}")
            sys.exit(1)

    output_format = os.environ.get("PADMACH_OUTPUT_FORMAT", "text").strip().lower()
    if output_format not in OUTPUT_FORMATS:
        logger.error(
            f"Invalid value for PADMACH_OUTPUT_FORMAT: {output_format}. "
            f"Expected one of {', '.join(OUTPUT_FORMATS)}."
        )
        sys.exit(1)

    metrics_file = os.environ.get("PADMACH_METRICS_FILE", "").strip() or None
    if metrics_file is not None:
        directory = os.path.dirname(os.path.abspath(metrics_file))
        if not os.path.isdir(directory):
            logger.error(f"Invalid value for PADMACH_METRICS_FILE: {metrics_file}. Directory does not exist.")
            sys.exit(1)

    return {
        "log_level": os.environ.get("PADMACH_LOG_LEVEL", "INFO").upper(),
        "seed": seed,
        "output_format": output_format,
        "metrics_file": metrics_file
    }
