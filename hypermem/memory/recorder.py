"""Message-handler side of the hypergraph memory.

Called for every inbound guild message: checks whether extraction is
enabled for the guild, runs the structural extractor and writes the result.
Failures here are logged and swallowed so they never break reply handling.
"""

from typing import Optional

from loguru import logger

from hypermem.config.schema import MemoryConfig
from hypermem.memory.extraction import IncomingMessage, StructuralExtractor
from hypermem.memory.store import HypergraphStore
from hypermem.metrics import MEMORY_EXTRACTED, MEMORY_FAILED, MEMORY_SKIPPED, get_metrics


class MemoryRecorder:
    """Turns inbound messages into stored hyperedges."""

    def __init__(
        self,
        store: HypergraphStore,
        extractor: Optional[StructuralExtractor] = None,
        config: Optional[MemoryConfig] = None,
    ):
        self.store = store
        self.config = config or store.config
        self.extractor = extractor or StructuralExtractor(self.config.extraction)

    def record(self, message: IncomingMessage) -> Optional[int]:
        """
        Extract and store a memory for a message.

        Returns:
            The new hyperedge ID, or None if nothing was stored
        """
        metrics = get_metrics()

        if not self.config.enabled or not self.config.extraction.enabled or not message.tenant_id:
            return None

        try:
            guild_config = self.store.get_hypergraph_config(message.tenant_id)
            if not guild_config.extraction_enabled:
                return None

            request = self.extractor.create_memory_data(message)
            if request is None:
                metrics.incr(MEMORY_SKIPPED)
                return None

            edge_id = self.store.create_hyperedge(message.tenant_id, request)
        except Exception as e:
            # Memory is non-critical to message handling
            logger.warning(f"Failed to create hypergraph memory (non-critical): {e}")
            metrics.incr(MEMORY_FAILED)
            return None

        metrics.incr(MEMORY_EXTRACTED, tags={"edge_type": request.edge_type})
        return edge_id
