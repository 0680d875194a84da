"""Main entry point for the fraud scoring demo"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST, before any other imports
# Find the .env file in the project root
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from src.constants import Decision, RingStatus
from src.demo.demo_data_loader import DemoDataLoader, load_demo_store
from src.orchestrator.ring_store import RingStore
from src.orchestrator.scoring_orchestrator import ScoringOrchestrator
from src.tools.embedding_provider import HashingEmbeddingProvider
from src.utils.config_loader import load_scoring_config
from src.utils.logging import get_logger

logger = get_logger(__name__)


def main(data_dir=None):
    """Score the demo incoming transactions and log a summary"""
    logger.info("=" * 60)
    logger.info("FRAUD SCORING - Multi-agent real-time scoring demo")
    logger.info("=" * 60)

    try:
        config = load_scoring_config()
        data_dir = data_dir or os.getenv("DEMO_DATA_DIR", "demo_data")
        embedder = HashingEmbeddingProvider()

        store = load_demo_store(data_dir, embedding_provider=embedder)
        ring_store = RingStore()
        orchestrator = ScoringOrchestrator(store, embedder, config=config, ring_store=ring_store)

        results = [orchestrator.score(txn) for txn in DemoDataLoader(data_dir).incoming_transactions()]

        logger.info("=" * 60)
        logger.info("SCORING SUMMARY")
        logger.info("=" * 60)
        for scored in results:
            logger.info(
                f"{scored.transaction.transaction_id}: {scored.decision.value} "
                f"(risk {scored.risk_score:.3f}, confidence {scored.confidence:.2f})",
                reasoning=scored.reasoning
            )
        for decision in Decision:
            logger.info(f"{decision.value}: {sum(1 for r in results if r.decision == decision)}")
        logger.info(f"Active fraud rings: {len(ring_store.list_rings(RingStatus.ACTIVE))}")
        logger.info("=" * 60)

        return results

    except Exception as e:
        logger.error(f"Main execution failed: {e}")
        raise


if __name__ == "__main__":
    main()
