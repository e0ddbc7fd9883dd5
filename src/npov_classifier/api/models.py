"""
API Models

Pydantic request models for the feature-extraction endpoints. Responses are
plain column-keyed rows (see FeatureRecord.to_json_row) so the HTTP output
matches the feature table header.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, ConfigDict


class FeatureRequest(BaseModel):
    """
    Feature extraction request for a single revision.
    """
    revision_url: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class FeatureBatchRequest(BaseModel):
    """
    Feature extraction request for several revisions, processed in batches.
    """
    revision_urls: List[str] = Field(..., min_length=1, max_length=500)

    model_config = ConfigDict(extra="forbid")
