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

"""Exceptions raised during the randomization of point patterns."""
from __future__ import annotations

from typing import Any


class RandomizationError(Exception):
    """Base class for all errors raised by randgeo."""


class InvalidInputError(RandomizationError, ValueError):
    """
    Raised when inputs cannot be randomized: too few points, empty sets, unrecognized or mismatched coordinate
    reference systems, invalid histogram parameters or degenerate observed distances.
    """


class InsufficientValidAreaError(RandomizationError, ValueError):
    """Raised when the raster mask has no valid cell to sample points from."""


class DegenerateDistanceError(RandomizationError, ArithmeticError):
    """Raised when a non-finite distance appears during the search."""


class ConvergenceFailure(RandomizationError, RuntimeError):
    """
    Raised when the search stops (maximum number of tries, timeout or cancellation) before every deviation reaches
    the tolerance.

    :param message: Error message.
    :param tries: Number of tries performed.
    :param accepts: Number of accepted moves.
    :param deviations: Deviation per category at the time the search stopped.
    """

    def __init__(self, message: str, tries: int = 0, accepts: int = 0, deviations: dict[str, float] | None = None):
        super().__init__(message)
        self.tries = tries
        self.accepts = accepts
        self.deviations: dict[str, Any] = dict(deviations) if deviations is not None else {}
