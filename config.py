"""
Load-test harness configuration.

This module turns the process environment into one explicit, immutable
:class:`HarnessConfig` object.  The journey, the HTTP client, the load
shape, the report writer and the provisioning scripts all receive that
object at construction time; nothing downstream reads ``os.environ``.

Two profile tables drive a run:

- **Workloads** (``smoke``, ``load``, ``stress``, ``spike``) describe how
  many virtual users run and for how long.  Setting any of the manual
  ramp variables (``VUS_MAX``, ``RAMP_UP_DURATION``, ``HOLD_DURATION``,
  ``RAMP_DOWN_DURATION``) replaces the named profile with a three-stage
  ``manual`` ramp.
- **Thresholds** (``low``, ``medium``, ``high``) live in
  :file:`tests/performance/thresholds.yml`.  Setting any of
  ``THRESHOLD_P95_MS``, ``THRESHOLD_P99_MS`` or ``THRESHOLD_ERROR_RATE``
  replaces the named profile with a ``manual`` one.

Key Concepts Demonstrated:
- Frozen dataclasses as explicit configuration objects
- Environment variables read once, with defaults, at a single seam
- Profile lookup with a safe fallback (mirrors ``get_config``)
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent

THRESHOLDS_FILE = BASE_DIR / "tests" / "performance" / "thresholds.yml"

DEFAULT_WORKLOAD = "smoke"
DEFAULT_THRESHOLD = "low"

_DURATION_RE = re.compile(r"^(?:(\d+(?:\.\d+)?)h)?(?:(\d+(?:\.\d+)?)m)?(?:(\d+(?:\.\d+)?)s)?$")


def parse_duration(value: str | float | int) -> float:
    """
    Convert a duration such as ``"30s"``, ``"5m"`` or ``"1m30s"`` to seconds.

    Bare numbers are treated as seconds.

    Raises:
        ValueError: If *value* is empty or not a recognised duration.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().lower()
    if not text:
        raise ValueError("Duration must not be empty")

    try:
        return float(text)
    except ValueError:
        pass

    match = _DURATION_RE.match(text)
    if match is None or not any(match.groups()):
        raise ValueError(f"Unrecognised duration: {value!r}")

    hours, minutes, seconds = (float(part) if part else 0.0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


# -----------------------------------------------------------------------------
# Workload profiles
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Stage:
    """One linear ramp segment: reach ``target`` users over ``duration`` seconds."""

    duration: float
    target: int


@dataclass(frozen=True)
class WorkloadProfile:
    """
    How many virtual users run, and for how long.

    A profile is either *ramping* (``stages`` is non-empty) or *fixed*
    (``users`` constant for ``run_time`` seconds, or until every user has
    completed ``iterations_per_user`` journeys).

    Attributes:
        name: Profile name used in logs and reports.
        description: Human-readable summary for the report.
        users: Fixed user count for non-ramping profiles.
        stages: Ramp segments for ramping profiles.
        start_users: User count at ``t=0`` for ramping profiles.
        iterations_per_user: Stop each user after this many journeys.
        pacing: Seconds between the *starts* of consecutive journeys.
        run_time: Hard stop for fixed profiles, in seconds.
    """

    name: str
    description: str = ""
    users: int = 1
    stages: tuple[Stage, ...] = ()
    start_users: int = 0
    iterations_per_user: int | None = None
    pacing: float | None = None
    run_time: float | None = None

    @property
    def is_ramping(self) -> bool:
        return bool(self.stages)

    @property
    def peak_users(self) -> int:
        if self.stages:
            return max([self.start_users] + [stage.target for stage in self.stages])
        return self.users

    @property
    def total_duration(self) -> float | None:
        """Length of the run in seconds, or ``None`` when iteration-bound."""
        if self.stages:
            return sum(stage.duration for stage in self.stages)
        return self.run_time

    def target_at(self, elapsed: float, finished_users: int = 0) -> tuple[int, float] | None:
        """
        Return ``(users, spawn_rate)`` for a point in the run, or ``None`` when done.

        An iteration-bound profile is done once *finished_users* (users
        that spent their budget, across every worker) reaches its peak.

        Ramping profiles interpolate linearly inside each stage, so the
        user count follows the same curve a ramping executor would.  The
        spawn rate is the stage slope (users per second), never below 1.
        """
        if not self.stages:
            if self.run_time is not None and elapsed >= self.run_time:
                return None
            if self.iterations_per_user is not None and finished_users >= self.peak_users:
                return None
            return self.users, float(max(self.users, 1))

        stage_start = 0.0
        previous_target = self.start_users
        for stage in self.stages:
            stage_end = stage_start + stage.duration
            if elapsed < stage_end:
                progress = (elapsed - stage_start) / stage.duration if stage.duration else 1.0
                users = previous_target + (stage.target - previous_target) * progress
                slope = abs(stage.target - previous_target) / stage.duration if stage.duration else 1.0
                return int(round(users)), max(1.0, slope)
            stage_start = stage_end
            previous_target = stage.target
        return None

    def describe(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the profile for reports."""
        return {
            "name": self.name,
            "description": self.description,
            "peak_users": self.peak_users,
            "stages": [
                {"duration_s": stage.duration, "target": stage.target} for stage in self.stages
            ],
            "iterations_per_user": self.iterations_per_user,
            "pacing_s": self.pacing,
            "duration_s": self.total_duration,
        }


WORKLOADS: dict[str, WorkloadProfile] = {
    # A handful of journeys from one user, for validating the script itself
    "smoke": WorkloadProfile(
        name="smoke",
        description="1 user, 5 journeys",
        users=1,
        iterations_per_user=5,
    ),
    # 12 journeys per 10 minutes, the average traffic volume
    "load": WorkloadProfile(
        name="load",
        description="12 journeys per 10 minutes for 10 minutes",
        users=1,
        pacing=600 / 12,
        run_time=600,
    ),
    "stress": WorkloadProfile(
        name="stress",
        description="Ramp to 200 users over 1m, hold 30m, ramp down over 1m",
        stages=(Stage(60, 200), Stage(1800, 200), Stage(60, 0)),
    ),
    "spike": WorkloadProfile(
        name="spike",
        description="Ramp to 200 users over 30s, hold 1m, ramp down over 30s",
        stages=(Stage(30, 200), Stage(60, 200), Stage(30, 0)),
    ),
}


def get_workload(name: str | None = None) -> WorkloadProfile:
    """
    Look up a workload profile by name.

    Args:
        name: Profile name.  Unknown or empty names fall back to ``smoke``.

    Returns:
        The matching :class:`WorkloadProfile`.
    """
    if name not in WORKLOADS:
        if name:
            logger.warning("Unknown workload profile %r, using %r", name, DEFAULT_WORKLOAD)
        name = DEFAULT_WORKLOAD
    return WORKLOADS[name]


# -----------------------------------------------------------------------------
# Threshold profiles
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ThresholdProfile:
    """
    Pass/fail limits for one run.

    Attributes:
        name: Profile name.
        duration_percentiles_ms: HTTP duration limits keyed by percentile,
            e.g. ``{90: 2500.0, 99.9: 2000.0}``; each must stay strictly below.
        max_failure_rate: HTTP failure-rate ceiling (``0.01`` = 1 %).
        min_checks_rate: Floor for the share of passing checks.
        abort_p95_ms: Stop the run early when aggregate p95 reaches this.
        abort_failure_rate: Stop the run early when the failure rate reaches this.
        endpoint_p95_ms: Per-request-name p95 limits.
        max_auth_failures: ``auth_failure`` counter must stay below this.
        max_failed_journey_ratio: ``failed_journey`` must stay below
            this fraction of the peak user count.
    """

    name: str
    duration_percentiles_ms: Mapping[float, float] = field(default_factory=dict)
    max_failure_rate: float = 0.01
    min_checks_rate: float = 0.95
    abort_p95_ms: float | None = None
    abort_failure_rate: float | None = None
    endpoint_p95_ms: Mapping[str, float] = field(default_factory=dict)
    max_auth_failures: int = 5
    max_failed_journey_ratio: float = 0.05


def load_threshold_profiles(path: Path = THRESHOLDS_FILE) -> dict[str, ThresholdProfile]:
    """
    Read every threshold profile from a YAML file.

    Profile entries inherit anything they do not set from the file's
    ``defaults`` block.

    Raises:
        ValueError: If the file has no ``profiles`` mapping or a value is
            not numeric.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    defaults = data.get("defaults") or {}
    profiles = data.get("profiles")
    if not isinstance(profiles, dict) or not profiles:
        raise ValueError(f"Thresholds file {path} must define a 'profiles' mapping")

    loaded: dict[str, ThresholdProfile] = {}
    for name, raw in profiles.items():
        merged = {**defaults, **(raw or {})}
        abort = merged.get("abort") or {}
        try:
            loaded[name] = ThresholdProfile(
                name=name,
                duration_percentiles_ms={
                    float(percentile): float(limit)
                    for percentile, limit in (merged.get("http_req_duration_ms") or {}).items()
                },
                max_failure_rate=float(merged["http_req_failed_max_rate"]),
                min_checks_rate=float(merged["checks_min_rate"]),
                abort_p95_ms=_optional_float(abort.get("p95_ms")),
                abort_failure_rate=_optional_float(abort.get("failure_rate")),
                endpoint_p95_ms={
                    str(endpoint): float(limit)
                    for endpoint, limit in (merged.get("endpoint_p95_ms") or {}).items()
                },
                max_auth_failures=int(merged.get("auth_failure_max_count", 5)),
                max_failed_journey_ratio=float(merged.get("failed_journey_max_ratio", 0.05)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid threshold profile {name!r} in {path}: {exc}") from exc
    return loaded


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


# -----------------------------------------------------------------------------
# Harness configuration
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class HarnessConfig:
    """
    Everything a run needs to know, resolved once from the environment.

    Attributes:
        target_url: Base URL of the application under test, no trailing slash.
        identity_stub_url: Base URL of the identity-provider stub.
        user_pool_prefix: Local part prefix of pooled user emails.
        user_pool_domain: Domain of pooled user emails.
        workload_name: Selected workload profile.
        threshold_name: Selected threshold profile.
        manual_vus_max: ``VUS_MAX`` override, if set.
        ramp_up: ``RAMP_UP_DURATION`` override, if set.
        hold: ``HOLD_DURATION`` override, if set.
        ramp_down: ``RAMP_DOWN_DURATION`` override, if set.
        threshold_p95_ms: ``THRESHOLD_P95_MS`` override, if set.
        threshold_p99_ms: ``THRESHOLD_P99_MS`` override, if set.
        threshold_error_rate: ``THRESHOLD_ERROR_RATE`` override, if set.
        request_timeout: Per-request timeout in seconds; ``None`` keeps
            the HTTP client's default.
        think_time_min: Lower bound of the pause between journey states.
        think_time_max: Upper bound; ``0`` disables think time.
        results_dir: Directory reports are written to.
        thresholds_file: YAML file holding the threshold profiles.
    """

    target_url: str = "http://localhost:3000"
    identity_stub_url: str = "http://localhost:3200"
    user_pool_prefix: str = "k6-perf-user"
    user_pool_domain: str = "example.com"
    workload_name: str = DEFAULT_WORKLOAD
    threshold_name: str = DEFAULT_THRESHOLD
    manual_vus_max: int | None = None
    ramp_up: str | None = None
    hold: str | None = None
    ramp_down: str | None = None
    threshold_p95_ms: float | None = None
    threshold_p99_ms: float | None = None
    threshold_error_rate: float | None = None
    request_timeout: float | None = None
    think_time_min: float = 0.0
    think_time_max: float = 0.0
    results_dir: Path = Path("results")
    thresholds_file: Path = THRESHOLDS_FILE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> HarnessConfig:
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read from.  Defaults to ``os.environ``.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def _get(*names: str) -> str | None:
            for name in names:
                value = env.get(name)
                if value not in (None, ""):
                    return value
            return None

        def _number(name: str, convert):
            raw = _get(name)
            if raw is None:
                return None
            try:
                return convert(raw)
            except ValueError as exc:
                raise ValueError(f"{name} must be numeric, got {raw!r}") from exc

        return cls(
            target_url=(_get("TARGET_URL") or cls.target_url).rstrip("/"),
            identity_stub_url=(_get("DEFRA_ID_STUB_URL") or cls.identity_stub_url).rstrip("/"),
            user_pool_prefix=_get("USER_POOL_PREFIX") or cls.user_pool_prefix,
            user_pool_domain=_get("USER_POOL_DOMAIN") or cls.user_pool_domain,
            workload_name=_get("LOAD_WORKLOAD", "K6_WORKLOAD") or DEFAULT_WORKLOAD,
            threshold_name=_get("LOAD_THRESHOLD", "K6_THRESHOLD") or DEFAULT_THRESHOLD,
            manual_vus_max=_number("VUS_MAX", int),
            ramp_up=_get("RAMP_UP_DURATION"),
            hold=_get("HOLD_DURATION"),
            ramp_down=_get("RAMP_DOWN_DURATION"),
            threshold_p95_ms=_number("THRESHOLD_P95_MS", float),
            threshold_p99_ms=_number("THRESHOLD_P99_MS", float),
            threshold_error_rate=_number("THRESHOLD_ERROR_RATE", float),
            request_timeout=_number("REQUEST_TIMEOUT", float),
            think_time_min=_number("THINK_TIME_MIN", float) or 0.0,
            think_time_max=_number("THINK_TIME_MAX", float) or 0.0,
            results_dir=Path(_get("RESULTS_DIR") or "results"),
        )

    @property
    def app_root_url(self) -> str:
        """The URL the identity flow must land on: the base URL plus ``/``."""
        return f"{self.target_url}/"

    def user_email(self, vu_number: int) -> str:
        """Return the pooled email for a 1-based virtual-user number."""
        return f"{self.user_pool_prefix}-{vu_number}@{self.user_pool_domain}"

    @property
    def uses_manual_workload(self) -> bool:
        return any(
            value is not None
            for value in (self.manual_vus_max, self.ramp_up, self.hold, self.ramp_down)
        )

    @property
    def uses_manual_thresholds(self) -> bool:
        return any(
            value is not None
            for value in (self.threshold_p95_ms, self.threshold_p99_ms, self.threshold_error_rate)
        )

    def workload(self) -> WorkloadProfile:
        """Resolve the workload: manual ramp overrides win over the named profile."""
        if not self.uses_manual_workload:
            return get_workload(self.workload_name)

        vus = self.manual_vus_max if self.manual_vus_max is not None else 50
        return WorkloadProfile(
            name="manual",
            description="Manual ramp from environment variables",
            start_users=1,
            stages=(
                Stage(parse_duration(self.ramp_up or "5m"), vus),
                Stage(parse_duration(self.hold or "10m"), vus),
                Stage(parse_duration(self.ramp_down or "2m"), 0),
            ),
        )

    def thresholds(self) -> ThresholdProfile:
        """Resolve the thresholds: manual overrides win over the named profile."""
        if self.uses_manual_thresholds:
            return ThresholdProfile(
                name="manual",
                duration_percentiles_ms={
                    95: self.threshold_p95_ms if self.threshold_p95_ms is not None else 3000.0,
                    99: self.threshold_p99_ms if self.threshold_p99_ms is not None else 5000.0,
                },
                max_failure_rate=(
                    self.threshold_error_rate if self.threshold_error_rate is not None else 0.01
                ),
                min_checks_rate=0.95,
            )

        profiles = load_threshold_profiles(self.thresholds_file)
        name = self.threshold_name
        if name not in profiles:
            logger.warning("Unknown threshold profile %r, using %r", name, DEFAULT_THRESHOLD)
            name = DEFAULT_THRESHOLD
        return profiles[name]

    def vus_max(self) -> int:
        """``VUS_MAX`` if set, otherwise the workload's peak user count."""
        if self.manual_vus_max is not None:
            return self.manual_vus_max
        return self.workload().peak_users

    def think_time_enabled(self) -> bool:
        return self.think_time_max > 0
