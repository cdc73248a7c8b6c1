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
Workflow running a randomization from a configuration file
"""

import csv
import logging
import os
from pathlib import Path
from typing import Any, Dict

import geoutils as gu
import matplotlib.pyplot as plt
import pandas as pd
import yaml  # type: ignore

from randgeo.distance import distance_euclidean, distance_haversine
from randgeo.plotting import plot_distance_distributions, plot_randomized_points
from randgeo.randomize import CATEGORIES, RandomizationEngine
from randgeo.schemas import RANDOMIZE_SCHEMA, validate_configuration

_distance_funcs = {
    "cosine": None,
    "haversine": distance_haversine,
    "euclidean": distance_euclidean,
}


class RandomizeWorkflow:
    """
    Randomization of two point tables within a raster, configured by a YAML file or a dictionary.
    """

    def __init__(self, user_config: str | Dict[str, Any]) -> None:
        """
        Initialize the workflow
        :param user_config: str path to a config file or dict as config
        :return: None
        """

        # Load configuration
        if isinstance(user_config, str):
            if not os.path.isfile(user_config):
                raise FileNotFoundError(f"{user_config} does not exist")
            self.config_path = user_config
            config_not_verify = self.load_config()
        elif isinstance(user_config, dict):
            config_not_verify = user_config
        else:
            raise ValueError(
                "The configuration should be provided either as a path to the configuration file"
                " or as a dictionary containing the configuration details."
            )

        self.config = validate_configuration(config_not_verify, RANDOMIZE_SCHEMA)

        self.outputs_folder = Path(self.config["outputs"]["path"])
        self.outputs_folder.mkdir(parents=True, exist_ok=True)
        logging.info(f"Outputs will be saved at {self.outputs_folder.absolute()}")

        self.engine: RandomizationEngine | None = None

    def load_config(self) -> Dict[str, Any]:
        """
        Load a configuration file
        :return: Configuration dictionary
        """
        with open(self.config_path) as f:
            return yaml.safe_load(f)

    def run(self) -> tuple[pd.DataFrame, pd.DataFrame]:
        """
        Run the randomization and save outputs
        :return: Randomized point tables
        """

        inputs = self.config["inputs"]
        params = dict(self.config["parameters"])

        points1 = pd.read_csv(inputs["points1"])
        points2 = pd.read_csv(inputs["points2"])
        raster = gu.Raster(inputs["raster"])
        logging.info("Loaded %d and %d points, and raster %s", len(points1), len(points2), inputs["raster"])

        distance_func = _distance_funcs[params.pop("distance")]
        self.engine = RandomizationEngine(
            points1,
            points2,
            raster,
            distance_func=distance_func,
            crs=inputs["crs"],
            **params,
        )
        self.engine.run()
        rand1, rand2 = self.engine.result()

        rand1.to_csv(self.outputs_folder / "randomized_1.csv", index=False)
        rand2.to_csv(self.outputs_folder / "randomized_2.csv", index=False)
        self.save_deviations_as_csv()

        if self.config["outputs"]["plot"]:
            self.generate_plots()

        return rand1, rand2

    def save_deviations_as_csv(self) -> None:
        """
        Save the deviations and counters of the search into a CSV file
        """
        assert self.engine is not None
        data: Dict[str, Any] = {cat: float(self.engine.deviations[cat]) for cat in CATEGORIES}
        data.update({"state": self.engine.state.name, "tries": self.engine.tries, "accepts": self.engine.accepts})

        filename = self.outputs_folder / "deviations.csv"
        with filename.open(mode="w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=list(data.keys()))
            writer.writeheader()
            writer.writerow(data)

    def generate_plots(self) -> None:
        """
        Save plots of the distance distributions and of the points
        """
        assert self.engine is not None
        plot_distance_distributions(self.engine, out_fname=str(self.outputs_folder / "distance_distributions.png"))
        plt.close()
        plot_randomized_points(self.engine, out_fname=str(self.outputs_folder / "randomized_points.png"))
        plt.close()


def run_from_config(user_config: str | Dict[str, Any]) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Run a randomization from a configuration file or dictionary.

    :param user_config: Path to a YAML configuration file or configuration dictionary.

    :return: Randomized point tables.
    """
    return RandomizeWorkflow(user_config).run()
