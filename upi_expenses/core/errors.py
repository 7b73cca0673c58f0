"""Custom exceptions for the expense tracker"""


class ExpenseTrackerError(Exception):
    """Base exception for expense tracker errors"""
    pass


class StoreError(ExpenseTrackerError):
    """Persistence read/write failures"""
    pass


class ValidationError(ExpenseTrackerError):
    """User-entered data rejected before reaching the store"""
    pass

