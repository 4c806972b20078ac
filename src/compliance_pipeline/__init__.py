"""Security event and LGPD compliance request pipeline."""

__version__ = "0.1.0"
