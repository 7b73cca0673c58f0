"""
Application wiring

Builds the parser, pipeline, aggregation engine and user-action service
around one store.
"""
import logging
from typing import Optional

from upi_expenses.core.actions import ExpenseService
from upi_expenses.core.aggregation import AggregationEngine
from upi_expenses.core.categorizer import Categorizer, seed_default_rules
from upi_expenses.core.ingestion import IngestionPipeline
from upi_expenses.core.sms_parser import TextTransactionParser, default_registry
from upi_expenses.utils.config import Settings

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Owns the collaborators for one store

    Default category rules are seeded here, once, when the store has none.
    """

    def __init__(self, store, settings: Optional[Settings] = None, clock=None, seed_rules: bool = True):
        self.store = store
        self.settings = settings or Settings()

        if seed_rules:
            seeded = seed_default_rules(store)
            if seeded:
                logger.info("First run: %d default rules added", seeded)

        self.registry = default_registry()
        self.categorizer = Categorizer(store)
        self.parser = TextTransactionParser(self.registry, self.categorizer)
        self.pipeline = IngestionPipeline(store, self.parser, progress_every=self.settings.progress_every)
        self.aggregation = AggregationEngine(store, clock=clock, week_start=self.settings.week_start)
        self.actions = ExpenseService(store)
