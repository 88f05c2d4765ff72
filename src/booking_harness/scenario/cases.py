"""Scenario definitions: built-in conversational flows and JSON case files."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from booking_harness.config import HarnessConfig
from booking_harness.types import (
    MessageKind,
    ScenarioCase,
    ScenarioStepCase,
    VerificationCriteria,
    utc_now,
)

from .expectations import Expectation, contains_all, contains_any, parse_expectation

VERIFICATION_STEP = "database_verification"

ONBOARDING = contains_any("welcome", "name")
MAIN_MENU = contains_any("menu", "book")
SERVICE_LIST = contains_any("service", "choose")
LOCATION_LIST = contains_any("location", "choose")
PROVIDER_LIST = contains_any("provider", "choose")
DATE_LIST = contains_any("date", "choose")
TIME_LIST = contains_any("time", "slot")
BOOKING_CONFIRMATION = contains_any("confirmed", "appointment")


@dataclass(frozen=True, slots=True)
class ScenarioStep:
    name: str
    text: str
    expectation: Expectation
    interactive_id: str | None = None
    interactive_title: str | None = None
    interactive_kind: MessageKind = MessageKind.LIST_REPLY
    sender: str | None = None


@dataclass(frozen=True, slots=True)
class Scenario:
    name: str
    steps: tuple[ScenarioStep, ...]
    verification: VerificationCriteria | None = None
    description: str = field(default="")

    @property
    def step_names(self) -> list[str]:
        names = [step.name for step in self.steps]
        if self.verification is not None:
            names.append(VERIFICATION_STEP)
        return names


def greeting_scenario() -> Scenario:
    return Scenario(
        name="greeting",
        description='"Hi" produces the onboarding welcome',
        steps=(
            ScenarioStep(
                name="Hi Response Test",
                text="Hi",
                expectation=contains_all("welcome", "name"),
            ),
        ),
    )


def booking_criteria(config: HarnessConfig, not_before: str | None = None) -> VerificationCriteria:
    return VerificationCriteria(
        subject_id=config.user_id,
        service_id=config.service_id,
        provider_id=config.provider_id,
        not_before=not_before or utc_now().date().isoformat(),
    )


def booking_scenario(config: HarnessConfig, *, verify: bool = True) -> Scenario:
    """Full onboarding-to-confirmation flow picking the first option at every prompt."""
    steps = (
        ScenarioStep("onboarding_start", "Hi", ONBOARDING),
        ScenarioStep("name_collection", config.user_name, MAIN_MENU),
        ScenarioStep("booking_selection", "1", SERVICE_LIST),
        ScenarioStep("service_selection", "1", LOCATION_LIST),
        ScenarioStep("location_selection", "1", PROVIDER_LIST),
        ScenarioStep("provider_selection", "1", DATE_LIST),
        ScenarioStep("date_selection", "1", TIME_LIST),
        ScenarioStep("time_selection", "1", BOOKING_CONFIRMATION),
    )
    return Scenario(
        name="booking",
        description="Complete booking flow",
        steps=steps,
        verification=booking_criteria(config) if verify else None,
    )


def builtin_scenarios(config: HarnessConfig) -> dict[str, Scenario]:
    return {
        "greeting": greeting_scenario(),
        "booking": booking_scenario(config),
    }


def _step_from_case(index: int, raw: ScenarioStepCase) -> ScenarioStep:
    text = raw.get("text") or raw.get("interactive_title") or raw.get("interactive_id")
    if not text:
        raise ValueError(f"Step {index + 1} needs a text or interactive_id.")
    kind_raw = raw.get("interactive_type") or MessageKind.LIST_REPLY.value
    try:
        kind = MessageKind(kind_raw)
    except ValueError as exc:
        raise ValueError(f"Step {index + 1} has unknown interactive_type '{kind_raw}'.") from exc
    if kind is MessageKind.TEXT:
        kind = MessageKind.LIST_REPLY
    return ScenarioStep(
        name=str(raw.get("name") or f"step_{index + 1}"),
        text=str(text),
        expectation=parse_expectation(raw.get("expect")),
        interactive_id=raw.get("interactive_id"),
        interactive_title=raw.get("interactive_title"),
        interactive_kind=kind,
        sender=raw.get("sender"),
    )


def scenario_from_case(case: ScenarioCase, config: HarnessConfig) -> Scenario:
    steps = case.get("steps")
    if not isinstance(steps, list) or not steps:
        raise ValueError(f"Scenario '{case.get('name')}' has no steps.")
    return Scenario(
        name=str(case["name"]),
        steps=tuple(_step_from_case(i, step) for i, step in enumerate(steps)),
        verification=booking_criteria(config) if case.get("verify") else None,
    )


def load_scenarios(path: Path, config: HarnessConfig) -> dict[str, Scenario]:
    """Load scenarios from a JSON object keyed by name, or an array of named scenarios."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    cases: list[dict[str, Any]] = []
    if isinstance(raw, dict):
        for case_name, value in raw.items():
            if isinstance(value, dict):
                case = dict(value)
                case["name"] = str(case.get("name") or case_name)
                cases.append(case)
    elif isinstance(raw, list):
        cases = [item for item in raw if isinstance(item, dict) and item.get("name")]
    else:
        raise ValueError("Scenario file must be a JSON object or array.")

    resolved: dict[str, Scenario] = {}
    for case in cases:
        scenario = scenario_from_case(cast(ScenarioCase, case), config)
        resolved[scenario.name] = scenario
    return resolved
