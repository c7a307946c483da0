from abc import ABC, abstractmethod

import httpx

from filterflow.models.config import SourceConfig
from filterflow.workflows.pipeline import ItemPipeline

class SourceAdapter(ABC):
    def __init__(self, client: httpx.AsyncClient, pipeline: ItemPipeline):
        self.client = client
        self.pipeline = pipeline

    @abstractmethod
    async def process(self, source: SourceConfig) -> int:
        """Runs every candidate of the source through the pipeline; returns how many were newly processed."""
        pass
