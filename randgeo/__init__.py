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

from randgeo import (  # noqa
    crs,
    distance,
    histogram,
    plotting,
    points,
    randomize,
    sampling,
)
from randgeo._version import __version__  # noqa
from randgeo.errors import (  # noqa
    ConvergenceFailure,
    DegenerateDistanceError,
    InsufficientValidAreaError,
    InvalidInputError,
    RandomizationError,
)
from randgeo.points import PointSet  # noqa
from randgeo.randomize import (  # noqa
    AnnealingAcceptance,
    EngineState,
    GreedyAcceptance,
    RandomizationEngine,
    randomize_by_self_and_other,
    randomize_by_self_and_other_detailed,
)
from randgeo.sampling import CandidatePool, RasterMask  # noqa
