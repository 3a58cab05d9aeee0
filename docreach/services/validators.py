"""
Pluggable pre-review checks run by submit_for_review: license format, hospital affiliation
name, background check. Each returns a CheckResult; a failed check blocks the transition.
The rule-based checks stand in for the medical board / hospital directory / background
services. RegistryLicenseCheck calls a remote registry over HTTP when one is configured.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

import httpx

from docreach.config import settings
from docreach.core.errors import ValidatorUnavailableError

logger = logging.getLogger(__name__)

SUSPICIOUS_MARKERS = ("TEST", "DEMO")
LICENSE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-/]*$")


@dataclass
class SubmissionContext:
    doctor_id: str
    full_name: str
    license_number: str
    hospital_affiliation: str
    degree: str


@dataclass(frozen=True)
class CheckResult:
    passed: bool
    reason: str = ""


class VerificationCheck:
    """Interface. name identifies the check in VALIDATION_FAILED errors."""

    name = "check"

    def run(self, ctx: SubmissionContext) -> CheckResult:
        raise NotImplementedError


def _has_suspicious_marker(value: str) -> bool:
    # Case-sensitive: placeholders are written in capitals, and real names may contain "test" or "demo"
    return any(m in value for m in SUSPICIOUS_MARKERS)


class LicenseFormatCheck(VerificationCheck):
    name = "license_format"

    def run(self, ctx: SubmissionContext) -> CheckResult:
        number = (ctx.license_number or "").strip()
        if not number:
            return CheckResult(False, "License number is required")
        if len(number) < 6 or len(number) > 20:
            return CheckResult(False, "License number must be 6-20 characters")
        if not LICENSE_PATTERN.match(number):
            return CheckResult(False, "License number contains invalid characters")
        if _has_suspicious_marker(number):
            return CheckResult(False, "License number looks like a placeholder")
        return CheckResult(True)


class AffiliationNameCheck(VerificationCheck):
    name = "hospital_affiliation"

    def run(self, ctx: SubmissionContext) -> CheckResult:
        hospital = (ctx.hospital_affiliation or "").strip()
        if len(hospital) < 2:
            return CheckResult(False, "Hospital affiliation is required")
        if not (ctx.full_name or "").strip():
            return CheckResult(False, "Doctor name is required to confirm affiliation")
        if _has_suspicious_marker(hospital):
            return CheckResult(False, "Hospital affiliation looks like a placeholder")
        return CheckResult(True)


class BackgroundCheck(VerificationCheck):
    name = "background_check"

    def run(self, ctx: SubmissionContext) -> CheckResult:
        name = (ctx.full_name or "").strip()
        if len(name) < 3:
            return CheckResult(False, "Full name must be at least 3 characters")
        if _has_suspicious_marker(name):
            return CheckResult(False, "Name looks like a placeholder")
        if not (ctx.license_number or "").strip():
            return CheckResult(False, "License number is required")
        return CheckResult(True)


class RegistryLicenseCheck(VerificationCheck):
    """GET {registry_url}?license=...&hospital=...; expects JSON {"valid": bool, "reason": str}."""

    name = "license_registry"

    def __init__(self, registry_url: str, timeout: float = 8.0):
        self.registry_url = registry_url
        self.timeout = timeout

    def run(self, ctx: SubmissionContext) -> CheckResult:
        params = {"license": ctx.license_number, "hospital": ctx.hospital_affiliation, "name": ctx.full_name}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.get(self.registry_url, params=params)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("License registry request failed for %s: %s", ctx.doctor_id, e)
            raise ValidatorUnavailableError(self.name, str(e)) from e
        if data.get("valid") is True:
            return CheckResult(True)
        return CheckResult(False, data.get("reason") or "License not found in registry")


def default_checks(registry_url: Optional[str] = None) -> List[VerificationCheck]:
    checks: List[VerificationCheck] = [LicenseFormatCheck(), AffiliationNameCheck(), BackgroundCheck()]
    url = registry_url if registry_url is not None else settings.license_registry_url
    if url:
        checks.append(RegistryLicenseCheck(url, timeout=settings.license_registry_timeout_seconds))
    return checks


def get_verification_checks() -> List[VerificationCheck]:
    return default_checks()
