"""
Data ingestion module for flighttracks.

Handles calling the FR24 API, resolving flight legs, and filtering
track points down to airborne positions.
"""

from flighttracks.ingestion.fr24_client import Fr24Client, Fr24ApiError, RateLimitExhausted
from flighttracks.ingestion.pipeline import TrackPipeline, FilterThresholds

__all__ = ['Fr24Client', 'Fr24ApiError', 'RateLimitExhausted', 'TrackPipeline', 'FilterThresholds']
