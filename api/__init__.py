"""
Remote API Layer
================

Boundary between the client-side sync layer and the remote DPDA API.

Components:
- ClientConfig:    frozen configuration (env-loadable)
- RequestPipeline: httpx client with session header + failure logging
- DpdaApi:         one coroutine per remote operation
- contracts:       frozen request/response types
"""

from .config import ClientConfig, SESSION_HEADER
from .pipeline import RequestPipeline
from .endpoints import DpdaApi
from .contracts import (
    UNSET,
    AlphabetsConfig,
    AlphabetsPatch,
    ChangesResponse,
    ComputeRequest,
    ComputeResult,
    CreateDpdaRequest,
    CreatedDpda,
    DeleteTransitionResponse,
    DpdaInfo,
    DpdaList,
    DpdaSummary,
    ErrorResponse,
    ExportFormat,
    ExportResult,
    StatesConfig,
    StatesPatch,
    SuccessResponse,
    TraceStep,
    Transition,
    TransitionList,
    TransitionPatch,
    UpdateDpdaRequest,
    ValidationResult,
    Violation,
    VisualizationFormat,
    VisualizationPayload,
)

__all__ = [
    'ClientConfig', 'SESSION_HEADER', 'RequestPipeline', 'DpdaApi',
    'UNSET', 'AlphabetsConfig', 'AlphabetsPatch', 'ChangesResponse',
    'ComputeRequest', 'ComputeResult', 'CreateDpdaRequest', 'CreatedDpda',
    'DeleteTransitionResponse', 'DpdaInfo', 'DpdaList', 'DpdaSummary',
    'ErrorResponse', 'ExportFormat', 'ExportResult', 'StatesConfig',
    'StatesPatch', 'SuccessResponse', 'TraceStep', 'Transition',
    'TransitionList', 'TransitionPatch', 'UpdateDpdaRequest',
    'ValidationResult', 'Violation', 'VisualizationFormat',
    'VisualizationPayload',
]
