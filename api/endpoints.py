"""
DPDA API Endpoints

One coroutine per remote operation. Each sends through the
RequestPipeline and parses the body into a frozen contract.

Positional transition writes (delete/update by index) take the index
the caller holds at the moment of the write. Callers must refetch the
whole list afterwards; the bindings layer does this through invalidation.
"""

from __future__ import annotations
from typing import Union
from urllib.parse import quote

from .contracts import (
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
    ExportFormat,
    ExportResult,
    StatesConfig,
    StatesPatch,
    SuccessResponse,
    Transition,
    TransitionList,
    TransitionPatch,
    UpdateDpdaRequest,
    ValidationResult,
    VisualizationFormat,
    VisualizationPayload,
)
from .pipeline import RequestPipeline


def _dpda_path(dpda_id: str, suffix: str = "") -> str:
    if not dpda_id:
        raise ValueError("dpda_id is required")
    return f"/api/dpda/{quote(dpda_id, safe='')}{suffix}"


def _check_index(index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError(f"Transition index must be a non-negative integer, got {index!r}")
    return index


class DpdaApi:
    """Typed client for the remote DPDA resource graph."""

    def __init__(self, pipeline: RequestPipeline):
        self._pipeline = pipeline

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    # =========================================================================
    # ENTITY
    # =========================================================================

    async def create_dpda(self, request: CreateDpdaRequest) -> CreatedDpda:
        response = await self._pipeline.post("/api/dpda/create", json=request.to_payload())
        return CreatedDpda.from_payload(response.json())

    async def list_dpdas(self) -> DpdaList:
        response = await self._pipeline.get("/api/dpda/list")
        return DpdaList.from_payload(response.json())

    async def get_dpda(self, dpda_id: str) -> DpdaInfo:
        response = await self._pipeline.get(_dpda_path(dpda_id))
        return DpdaInfo.from_payload(response.json())

    async def update_dpda(self, dpda_id: str, request: UpdateDpdaRequest) -> ChangesResponse:
        response = await self._pipeline.patch(_dpda_path(dpda_id), json=request.to_payload())
        return ChangesResponse.from_payload(response.json())

    async def delete_dpda(self, dpda_id: str) -> SuccessResponse:
        response = await self._pipeline.delete(_dpda_path(dpda_id))
        return SuccessResponse.from_payload(response.json())

    # =========================================================================
    # STATES / ALPHABETS
    # =========================================================================

    async def set_states(self, dpda_id: str, config: StatesConfig) -> SuccessResponse:
        response = await self._pipeline.post(_dpda_path(dpda_id, "/states"), json=config.to_payload())
        return SuccessResponse.from_payload(response.json())

    async def replace_states(self, dpda_id: str, config: StatesConfig) -> SuccessResponse:
        response = await self._pipeline.put(_dpda_path(dpda_id, "/states"), json=config.to_payload())
        return SuccessResponse.from_payload(response.json())

    async def patch_states(self, dpda_id: str, patch: StatesPatch) -> ChangesResponse:
        response = await self._pipeline.patch(_dpda_path(dpda_id, "/states"), json=patch.to_payload())
        return ChangesResponse.from_payload(response.json())

    async def set_alphabets(self, dpda_id: str, config: AlphabetsConfig) -> SuccessResponse:
        response = await self._pipeline.post(_dpda_path(dpda_id, "/alphabets"), json=config.to_payload())
        return SuccessResponse.from_payload(response.json())

    async def replace_alphabets(self, dpda_id: str, config: AlphabetsConfig) -> SuccessResponse:
        response = await self._pipeline.put(_dpda_path(dpda_id, "/alphabets"), json=config.to_payload())
        return SuccessResponse.from_payload(response.json())

    async def patch_alphabets(self, dpda_id: str, patch: AlphabetsPatch) -> ChangesResponse:
        response = await self._pipeline.patch(_dpda_path(dpda_id, "/alphabets"), json=patch.to_payload())
        return ChangesResponse.from_payload(response.json())

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def get_transitions(self, dpda_id: str) -> TransitionList:
        response = await self._pipeline.get(_dpda_path(dpda_id, "/transitions"))
        return TransitionList.from_payload(response.json())

    async def add_transition(self, dpda_id: str, transition: Transition) -> SuccessResponse:
        response = await self._pipeline.post(
            _dpda_path(dpda_id, "/transition"), json=transition.to_payload()
        )
        return SuccessResponse.from_payload(response.json())

    async def delete_transition(self, dpda_id: str, index: int) -> DeleteTransitionResponse:
        response = await self._pipeline.delete(
            _dpda_path(dpda_id, f"/transition/{_check_index(index)}")
        )
        return DeleteTransitionResponse.from_payload(response.json())

    async def update_transition(
        self, dpda_id: str, index: int, patch: TransitionPatch
    ) -> ChangesResponse:
        response = await self._pipeline.put(
            _dpda_path(dpda_id, f"/transition/{_check_index(index)}"), json=patch.to_payload()
        )
        return ChangesResponse.from_payload(response.json())

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def compute(self, dpda_id: str, request: ComputeRequest) -> ComputeResult:
        response = await self._pipeline.post(_dpda_path(dpda_id, "/compute"), json=request.to_payload())
        return ComputeResult.from_payload(response.json())

    async def validate(self, dpda_id: str) -> ValidationResult:
        response = await self._pipeline.post(_dpda_path(dpda_id, "/validate"))
        return ValidationResult.from_payload(response.json())

    async def export(
        self, dpda_id: str, format: Union[ExportFormat, str] = ExportFormat.JSON
    ) -> ExportResult:
        fmt = ExportFormat(format)
        response = await self._pipeline.get(_dpda_path(dpda_id, "/export"), params={"format": fmt.value})
        return ExportResult.from_payload(response.json())

    async def visualize(
        self,
        dpda_id: str,
        format: Union[VisualizationFormat, str] = VisualizationFormat.CYTOSCAPE,
    ) -> VisualizationPayload:
        fmt = VisualizationFormat(format)
        response = await self._pipeline.get(
            _dpda_path(dpda_id, "/visualize"), params={"format": fmt.value}
        )
        return VisualizationPayload.from_payload(response.json())

    async def aclose(self) -> None:
        await self._pipeline.aclose()
