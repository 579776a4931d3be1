#!/usr/bin/env python3
"""
Filename utilities for generating output filenames.
"""

import os
import logging

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 100


def generate_output_filename(input_filename: str, suffix: str = " navigation") -> str:
    """
    Generates an output GeoJSON filename and reserves it by creating an empty file.

    The .gpx extension is dropped, the suffix and ".geojson" appended, and
    " (1)", " (2)" ... tried in turn when the name is taken. The exclusive
    open (`open(path, 'x')`) reserves the name.

    Args:
        input_filename: Path to the input GPX track
        suffix: Text appended to the base name

    Returns:
        Output filename that has been created as an empty file

    Raises:
        RuntimeError: If no available filename was found
        ValueError: If a file cannot be created (permissions, invalid name)
    """
    input_dir = os.path.dirname(input_filename)
    input_base = os.path.basename(input_filename)

    if input_base.lower().endswith(".gpx"):
        base_name = input_base[:-4]
    else:
        base_name = input_base

    base_output = base_name + suffix
    candidates = [base_output + ".geojson"] + [
        f"{base_output} ({i}).geojson" for i in range(1, MAX_ATTEMPTS + 1)
    ]

    for name in candidates:
        candidate = os.path.join(input_dir, name)
        try:
            with open(candidate, "x"):
                pass
            return candidate
        except FileExistsError:
            continue
        except OSError as e:
            logger.error(f"Cannot create file {candidate}: {e}")
            raise ValueError(f"Cannot create file: {e}")

    logger.error(
        f"Could not find an available filename after {MAX_ATTEMPTS} attempts. "
        f"Please clean up your output directory or specify --output explicitly."
    )
    raise RuntimeError(f"No available filename found after {MAX_ATTEMPTS} attempts")
