"""Ad copy generation for clusters."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from app.models.icp import ICP
from app.models.prospect import AdCopy, Cluster
from app.services.discovery.strategies import DiscoveryStrategy

logger = logging.getLogger(__name__)


class AdCopyValidationError(RuntimeError):
    """Raised when the copy collaborator breaks the `{headline, lines[2], cta}` contract."""

    def __init__(self, message: str, code: str = "422_INVALID_AD_COPY") -> None:
        super().__init__(message)
        self.code = code


class AdCopyGenerator:
    def __init__(self, strategy: DiscoveryStrategy) -> None:
        self._strategy = strategy

    async def generate(self, cluster: Cluster, icp: ICP) -> AdCopy:
        criteria = cluster.criteria
        payload = await self._strategy.generate_ad_copy(
            criteria.dominant_industry,
            criteria.dominant_workflow,
            list(icp.buyer_roles),
        )
        try:
            copy = AdCopy.model_validate(payload)
        except ValidationError as exc:
            logger.warning("ad_copy.invalid", extra={"cluster": cluster.label})
            raise AdCopyValidationError(f"Ad copy for {cluster.label} is malformed.") from exc
        if any(not line.strip() for line in copy.lines):
            raise AdCopyValidationError(f"Ad copy for {cluster.label} has an empty line.")
        return copy
