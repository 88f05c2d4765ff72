"""Scripted conversational scenarios and their driver."""

from .cases import (
    VERIFICATION_STEP,
    Scenario,
    ScenarioStep,
    booking_criteria,
    booking_scenario,
    builtin_scenarios,
    greeting_scenario,
    load_scenarios,
)
from .driver import NO_TEST_MODE_REPLY, ScenarioDriver
from .expectations import ContainsAll, ContainsAny, Custom, contains_all, contains_any

__all__ = [
    "NO_TEST_MODE_REPLY",
    "VERIFICATION_STEP",
    "ContainsAll",
    "ContainsAny",
    "Custom",
    "Scenario",
    "ScenarioDriver",
    "ScenarioStep",
    "booking_criteria",
    "booking_scenario",
    "builtin_scenarios",
    "contains_all",
    "contains_any",
    "greeting_scenario",
    "load_scenarios",
]
