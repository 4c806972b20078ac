"""LGPD compliance request handling."""

from compliance_pipeline.compliance.manager import ComplianceRequestManager

__all__ = ["ComplianceRequestManager"]
