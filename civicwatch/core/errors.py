"""
errors.py — Exception taxonomy for the analysis core.

None of these are meant to reach an end user as a 500. Each one has a
degradation policy at the seam where it is caught:

  InvalidInputError            → report dropped from clustering, warning logged
  EmptyInputError              → empty AnalysisResult ("No reports available…")
  CollaboratorTimeoutError     → fallback summary / "provider_unavailable"
  CollaboratorUnavailableError → same as timeout
  NoFacilitiesFoundError       → typed empty hospital result ("increase radius")
"""


class CivicWatchError(Exception):
    """Base class for all analysis-core errors."""


class InvalidInputError(CivicWatchError):
    """A single report is malformed (missing or non-finite coordinates, duplicate id)."""

    def __init__(self, report_id: str, reason: str) -> None:
        super().__init__(f"Report {report_id!r} rejected: {reason}")
        self.report_id = report_id
        self.reason = reason


class EmptyInputError(CivicWatchError):
    """No reports were supplied to the analysis pipeline."""


class CollaboratorError(CivicWatchError):
    """An external collaborator (insight generator, facility provider) failed."""

    def __init__(self, collaborator: str, detail: str = "") -> None:
        message = f"{collaborator} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.collaborator = collaborator
        self.detail = detail


class CollaboratorTimeoutError(CollaboratorError):
    """The collaborator did not answer within its configured timeout."""


class CollaboratorUnavailableError(CollaboratorError):
    """The collaborator raised, returned an error status, or an unusable payload."""


class NoFacilitiesFoundError(CivicWatchError):
    """A facility search returned zero candidates within the requested radius."""

    def __init__(self, latitude: float, longitude: float, radius_km: float) -> None:
        super().__init__(
            f"No hospitals found within {radius_km:g} km. "
            "Try increasing the search radius."
        )
        self.latitude = latitude
        self.longitude = longitude
        self.radius_km = radius_km
