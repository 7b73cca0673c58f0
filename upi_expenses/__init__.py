"""
UPI Expense Tracker

Turns UPI payment SMS messages into categorized transactions and reports
spending, budgets and trends over them.
"""

__version__ = "1.0.0"

# Expose main classes for easy imports
from .container import AppContainer
from .core.aggregation import AggregationEngine
from .core.categorizer import Categorizer
from .core.ingestion import IngestionPipeline
from .core.sms_parser import TextTransactionParser, default_registry

__all__ = [
    'AppContainer',
    'AggregationEngine',
    'Categorizer',
    'IngestionPipeline',
    'TextTransactionParser',
    'default_registry',
]
