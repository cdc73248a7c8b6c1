# Copyright (c) 2024 randgeo developers
#
# This file is part of the randgeo project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Schema constants and validation function
"""
import logging
import os
from typing import Any, Dict

from cerberus import Validator

from randgeo.crs import crs_from_user_input
from randgeo.errors import InvalidInputError


class CustomValidator(Validator):  # type: ignore
    def _validate_path_exists(self, path_exists: bool, field: str, value: str) -> bool:
        """
        {'type': 'boolean'}
        """
        if value is not None:
            if path_exists and not os.path.exists(value):
                self._error(field, f"Path does not exist: {value}")
        return True

    def _validate_crs(self, crs: bool, field: str, value: str | int) -> bool:
        """
        {'type': 'boolean'}
        """
        if crs and value is not None:
            try:
                crs_from_user_input(value)
            except InvalidInputError as e:
                logging.error(f"'{field}' field is not valid. {e}")
                self._error(field, f"Unrecognized coordinate reference system: {value}")
        return True


DISTANCE_METHODS = ["cosine", "haversine", "euclidean"]

INPUTS_RANDOMIZE = {
    "points1": {"type": "string", "required": True, "path_exists": True},
    "points2": {"type": "string", "required": True, "path_exists": True},
    "raster": {"type": "string", "required": True, "path_exists": True},
    "crs": {"type": ["integer", "string"], "required": False, "nullable": True, "crs": True, "default": None},
}

PARAMETERS_RANDOMIZE = {
    "bins": {"type": "integer", "min": 2, "default": 20},
    "tol": {"type": "number", "min": 1e-12, "default": 0.001},
    "overlap": {"type": "number", "min": 0, "max": 0.99, "default": 0.5},
    "distance": {"type": "string", "allowed": DISTANCE_METHODS, "default": "cosine"},
    "escape_every": {"type": "integer", "min": 1, "nullable": True, "default": 10000},
    "max_iterations": {"type": "integer", "min": 1, "default": 1000000},
    "timeout": {"type": "number", "min": 1e-9, "nullable": True, "default": None},
    "best_effort": {"type": "boolean", "default": False},
    "random_state": {"type": "integer", "nullable": True, "default": None},
    "area_weighted": {"type": "boolean", "default": True},
    "jitter": {"type": "boolean", "default": False},
}

OUTPUTS_RANDOMIZE = {
    "path": {"type": "string", "default": "outputs"},
    "plot": {"type": "boolean", "default": False},
}

RANDOMIZE_SCHEMA = {
    "inputs": {"type": "dict", "required": True, "schema": INPUTS_RANDOMIZE},
    "parameters": {"type": "dict", "required": False, "default": {}, "schema": PARAMETERS_RANDOMIZE},
    "outputs": {"type": "dict", "required": False, "default": {}, "schema": OUTPUTS_RANDOMIZE},
}


def validate_configuration(user_config: dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the configuration:
    :param user_config: Configuration dict
    :param schema: Schema dict for validating configuration
    :return: Completed configuration dictionary
    """
    validator = CustomValidator(schema)
    if not validator.validate(user_config):
        for field, errors in validator.errors.items():
            raise ValueError(f"User configuration mistakes in '{field}': {errors}")

    return validator.document
