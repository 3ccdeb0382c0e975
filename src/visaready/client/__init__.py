"""
Client-side workflow package: remote API client, state storage and the
step-based validation workflow.
"""

from .api_client import HttpValidationApi
from .storage import InMemoryStateStorage, JsonFileStateStorage
from .workflow import ValidationWorkflow, payment_key

__all__ = [
    'HttpValidationApi',
    'InMemoryStateStorage',
    'JsonFileStateStorage',
    'ValidationWorkflow',
    'payment_key',
]
