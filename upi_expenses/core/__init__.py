"""Parsing, categorization, ingestion and analytics"""

from .actions import ExpenseService
from .aggregation import AggregationEngine, MAX_BUDGET_USAGE
from .categorizer import Categorizer, StaticRuleSource, default_rules, seed_default_rules, suggest_keyword
from .errors import ExpenseTrackerError, StoreError, ValidationError
from .ingestion import HistoricalImportTask, ImportResult, IngestionPipeline, IngestOutcome
from .message_source import Message, load_messages, select_messages
from .sms_parser import Extractor, PatternRegistry, TextTransactionParser, default_registry

__all__ = [
    'AggregationEngine',
    'Categorizer',
    'default_registry',
    'default_rules',
    'ExpenseService',
    'ExpenseTrackerError',
    'Extractor',
    'HistoricalImportTask',
    'ImportResult',
    'IngestionPipeline',
    'IngestOutcome',
    'load_messages',
    'MAX_BUDGET_USAGE',
    'Message',
    'PatternRegistry',
    'seed_default_rules',
    'select_messages',
    'StaticRuleSource',
    'StoreError',
    'suggest_keyword',
    'TextTransactionParser',
    'ValidationError',
]
