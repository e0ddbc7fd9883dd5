"""
Feature Routes

Endpoints that run the feature-extraction pipeline for one or many revision
URLs and return column-keyed feature rows.

Domain errors (bad locators, upstream failures, exhausted rate limits) are
translated to HTTP responses by the handlers registered in main.create_app().
"""

from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends, status

from .dependencies import get_extractor
from .models import FeatureBatchRequest, FeatureRequest
from ..features.batch import extract_many
from ..features.extractor import FeatureExtractor

router = APIRouter(prefix="/features", tags=["features"])


@router.post(
    "",
    summary="Extract the feature record of one revision",
    status_code=status.HTTP_200_OK,
)
async def extract_features(
    req: FeatureRequest,
    extractor: Annotated[FeatureExtractor, Depends(get_extractor)],
) -> Dict[str, Any]:
    record = await extractor.extract(req.revision_url)
    return record.to_json_row()


@router.post(
    "/batch",
    summary="Extract feature records for several revisions",
    status_code=status.HTTP_200_OK,
)
async def extract_features_batch(
    req: FeatureBatchRequest,
    extractor: Annotated[FeatureExtractor, Depends(get_extractor)],
) -> List[Dict[str, Any]]:
    """
    Records are returned in request order. The first failing revision
    fails the whole request.
    """
    records = await extract_many(extractor, req.revision_urls)
    return [record.to_json_row() for record in records]
