"""
Offline integration layer (scenario loading and end-to-end runs)
"""

from .scenario import Scenario, build, load_scenario, run, scenario_from_dict

__all__ = [
    "Scenario",
    "build",
    "load_scenario",
    "run",
    "scenario_from_dict",
]
