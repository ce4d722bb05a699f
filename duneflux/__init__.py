"""
duneflux - Aeolian Sediment Flux Toolkit

This package turns degrib extracts of forecast and reanalysis surface fields
into aligned, metadata-carrying time series, derives wind kinematics and
aeolian sediment flux, and summarizes the results by calendar period.

Time Series Ingestion:
- Degrib output parsing with reference/valid time checks
- Outer-join merging with (parameter, unit) provenance

Scientific Utilities:
- Wind kinematics (component conventions, log-law profile)
- Threshold friction velocity and sediment flux models
- Air density with temperature gap interpolation
- Yearly and monthly summaries, vector resultants
- Dune mobility indices
"""

__version__ = "1.0.0"
__author__ = "duneflux Development Team"
