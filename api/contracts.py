"""
Remote API Contracts

Typed request/response schemas for client ↔ DPDA API communication.

BOUNDARY ENFORCEMENT:
=====================
- All types are FROZEN (immutable)
- Requests serialize through to_payload(), responses parse through from_payload()
- Collections are tuples, never lists, so a cached value cannot be patched

CLIENT-SIDE CHECKS:
===================
Full configurations check their own invariants in __post_init__ and raise
ValueError. Partial updates only check that they carry something; whether
the combined result is valid is the server's decision, surfaced verbatim.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import httpx


MAX_COMPUTE_STEPS = 1_000_000
DEFAULT_COMPUTE_STEPS = 10_000


class _Unset:
    """Marker for 'field not provided' where None is a meaningful value."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


# =============================================================================
# FORMATS
# =============================================================================

class ExportFormat(Enum):
    JSON = "json"
    YAML = "yaml"
    XML = "xml"


class VisualizationFormat(Enum):
    CYTOSCAPE = "cytoscape"
    DOT = "dot"
    D3 = "d3"


# =============================================================================
# ENTITY
# =============================================================================

@dataclass(frozen=True)
class CreateDpdaRequest:
    name: str
    description: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Name must be at least 1 character")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            payload["description"] = self.description
        return payload


@dataclass(frozen=True)
class UpdateDpdaRequest:
    """Partial metadata update. At least one field must be provided."""
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if self.name is None and self.description is None:
            raise ValueError("At least one field must be provided")
        if self.name is not None and not self.name:
            raise ValueError("Name must be at least 1 character")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.name is not None:
            payload["name"] = self.name
        if self.description is not None:
            payload["description"] = self.description
        return payload


@dataclass(frozen=True)
class CreatedDpda:
    id: str
    name: str
    description: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CreatedDpda:
        return cls(
            id=payload["id"],
            name=payload["name"],
            description=payload.get("description"),
        )


@dataclass(frozen=True)
class DpdaSummary:
    id: str
    name: str
    description: Optional[str] = None
    is_valid: Optional[bool] = None
    created_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DpdaSummary:
        return cls(
            id=payload["id"],
            name=payload["name"],
            description=payload.get("description"),
            is_valid=payload.get("is_valid"),
            created_at=payload.get("created_at"),
        )


@dataclass(frozen=True)
class DpdaList:
    dpdas: Tuple[DpdaSummary, ...]
    total: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DpdaList:
        dpdas = tuple(DpdaSummary.from_payload(item) for item in payload.get("dpdas", ()))
        return cls(dpdas=dpdas, total=payload.get("total", len(dpdas)))


# =============================================================================
# CONFIGURATION (sub-resources)
# =============================================================================

@dataclass(frozen=True)
class StatesConfig:
    """
    Full states configuration.

    INVARIANTS:
    - at least one state
    - initial_state in states
    - accept_states subset of states
    """
    states: Tuple[str, ...]
    initial_state: str
    accept_states: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "states", tuple(self.states))
        object.__setattr__(self, "accept_states", tuple(self.accept_states))
        if not self.states:
            raise ValueError("At least one state is required")
        if any(not s for s in self.states):
            raise ValueError("State names must not be empty")
        if self.initial_state not in self.states:
            raise ValueError("Initial state must be in states list")
        if not set(self.accept_states) <= set(self.states):
            raise ValueError("All accept states must be in states list")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "states": list(self.states),
            "initial_state": self.initial_state,
            "accept_states": list(self.accept_states),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Optional[StatesConfig]:
        """Parse from an entity payload; None if states are not configured."""
        if not payload.get("states") or not payload.get("initial_state"):
            return None
        return cls(
            states=tuple(payload["states"]),
            initial_state=payload["initial_state"],
            accept_states=tuple(payload.get("accept_states") or ()),
        )


@dataclass(frozen=True)
class StatesPatch:
    states: Optional[Tuple[str, ...]] = None
    initial_state: Optional[str] = None
    accept_states: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if self.states is None and self.initial_state is None and self.accept_states is None:
            raise ValueError("At least one field must be provided")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.states is not None:
            payload["states"] = list(self.states)
        if self.initial_state is not None:
            payload["initial_state"] = self.initial_state
        if self.accept_states is not None:
            payload["accept_states"] = list(self.accept_states)
        return payload


@dataclass(frozen=True)
class AlphabetsConfig:
    """
    Full alphabets configuration.

    INVARIANTS:
    - input_alphabet may be empty (epsilon-only machines)
    - stack_alphabet is non-empty
    - initial_stack_symbol in stack_alphabet
    """
    input_alphabet: Tuple[str, ...]
    stack_alphabet: Tuple[str, ...]
    initial_stack_symbol: str

    def __post_init__(self):
        object.__setattr__(self, "input_alphabet", tuple(self.input_alphabet))
        object.__setattr__(self, "stack_alphabet", tuple(self.stack_alphabet))
        if any(not s for s in self.input_alphabet + self.stack_alphabet):
            raise ValueError("Alphabet symbols must not be empty")
        if not self.stack_alphabet:
            raise ValueError("At least one stack symbol is required")
        if self.initial_stack_symbol not in self.stack_alphabet:
            raise ValueError("Initial stack symbol must be in stack alphabet")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "input_alphabet": list(self.input_alphabet),
            "stack_alphabet": list(self.stack_alphabet),
            "initial_stack_symbol": self.initial_stack_symbol,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Optional[AlphabetsConfig]:
        """Parse from an entity payload; None if alphabets are not configured."""
        if not payload.get("stack_alphabet") or not payload.get("initial_stack_symbol"):
            return None
        return cls(
            input_alphabet=tuple(payload.get("input_alphabet") or ()),
            stack_alphabet=tuple(payload["stack_alphabet"]),
            initial_stack_symbol=payload["initial_stack_symbol"],
        )


@dataclass(frozen=True)
class AlphabetsPatch:
    input_alphabet: Optional[Tuple[str, ...]] = None
    stack_alphabet: Optional[Tuple[str, ...]] = None
    initial_stack_symbol: Optional[str] = None

    def __post_init__(self):
        if (
            self.input_alphabet is None
            and self.stack_alphabet is None
            and self.initial_stack_symbol is None
        ):
            raise ValueError("At least one field must be provided")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.input_alphabet is not None:
            payload["input_alphabet"] = list(self.input_alphabet)
        if self.stack_alphabet is not None:
            payload["stack_alphabet"] = list(self.stack_alphabet)
        if self.initial_stack_symbol is not None:
            payload["initial_stack_symbol"] = self.initial_stack_symbol
        return payload


# =============================================================================
# TRANSITIONS
# =============================================================================

@dataclass(frozen=True)
class Transition:
    """
    One transition rule.

    input_symbol None  -> epsilon (no input consumed)
    stack_top None     -> no stack read
    stack_push         -> first symbol ends on top of the stack
    """
    from_state: str
    input_symbol: Optional[str]
    stack_top: Optional[str]
    to_state: str
    stack_push: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "stack_push", tuple(self.stack_push))
        if not self.from_state:
            raise ValueError("From state is required")
        if not self.to_state:
            raise ValueError("To state is required")

    @property
    def is_epsilon(self) -> bool:
        return self.input_symbol is None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "from_state": self.from_state,
            "input_symbol": self.input_symbol,
            "stack_top": self.stack_top,
            "to_state": self.to_state,
            "stack_push": list(self.stack_push),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Transition:
        return cls(
            from_state=payload["from_state"],
            input_symbol=payload.get("input_symbol"),
            stack_top=payload.get("stack_top"),
            to_state=payload["to_state"],
            stack_push=tuple(payload.get("stack_push") or ()),
        )

    @classmethod
    def from_form(
        cls,
        from_state: str,
        input_symbol: str,
        stack_top: str,
        to_state: str,
        stack_push: Tuple[str, ...] = (),
    ) -> Transition:
        """Form values use "" for epsilon; the wire uses null."""
        return cls(
            from_state=from_state,
            input_symbol=input_symbol or None,
            stack_top=stack_top or None,
            to_state=to_state,
            stack_push=tuple(stack_push),
        )

    def to_form(self) -> Dict[str, Any]:
        return {
            "from_state": self.from_state,
            "input_symbol": self.input_symbol or "",
            "stack_top": self.stack_top or "",
            "to_state": self.to_state,
            "stack_push": list(self.stack_push),
        }


@dataclass(frozen=True)
class TransitionPatch:
    """
    Partial transition update.

    input_symbol/stack_top distinguish UNSET (leave alone) from None
    (set to epsilon).
    """
    from_state: Optional[str] = None
    input_symbol: Any = UNSET
    stack_top: Any = UNSET
    to_state: Optional[str] = None
    stack_push: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if not self.to_payload():
            raise ValueError("At least one field must be provided")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.from_state is not None:
            payload["from_state"] = self.from_state
        if self.input_symbol is not UNSET:
            payload["input_symbol"] = self.input_symbol
        if self.stack_top is not UNSET:
            payload["stack_top"] = self.stack_top
        if self.to_state is not None:
            payload["to_state"] = self.to_state
        if self.stack_push is not None:
            payload["stack_push"] = list(self.stack_push)
        return payload


@dataclass(frozen=True)
class TransitionList:
    """
    The whole ordered transition list, as one value.

    Positions are only meaningful for the fetch that produced this value.
    There is no indexing: a write takes its position from
    entries() at the moment of the write.
    """
    transitions: Tuple[Transition, ...] = ()
    total: int = 0

    def __len__(self) -> int:
        return len(self.transitions)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self.transitions)

    def entries(self) -> Tuple[Tuple[int, Transition], ...]:
        return tuple(enumerate(self.transitions))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TransitionList:
        transitions = tuple(Transition.from_payload(t) for t in payload.get("transitions") or ())
        return cls(transitions=transitions, total=payload.get("total", len(transitions)))


# =============================================================================
# ENTITY DETAIL
# =============================================================================

@dataclass(frozen=True)
class DpdaInfo:
    id: str
    name: str
    description: Optional[str] = None
    states: Optional[StatesConfig] = None
    alphabets: Optional[AlphabetsConfig] = None
    transitions: Optional[TransitionList] = None
    is_valid: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DpdaInfo:
        transitions = None
        if payload.get("transitions") is not None:
            transitions = TransitionList.from_payload({"transitions": payload["transitions"]})
        return cls(
            id=payload["id"],
            name=payload["name"],
            description=payload.get("description"),
            states=StatesConfig.from_payload(payload),
            alphabets=AlphabetsConfig.from_payload(payload),
            transitions=transitions,
            is_valid=payload.get("is_valid"),
        )

    @classmethod
    def from_created(cls, created: CreatedDpda) -> DpdaInfo:
        return cls(id=created.id, name=created.name, description=created.description)


# =============================================================================
# GENERIC WRITE RESPONSES
# =============================================================================

@dataclass(frozen=True)
class SuccessResponse:
    success: bool
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> SuccessResponse:
        return cls(success=bool(payload.get("success", True)), message=payload.get("message", ""))


@dataclass(frozen=True)
class ChangesResponse:
    """Result of a PATCH/PUT that reports which fields changed."""
    changes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ChangesResponse:
        return cls(changes=dict(payload.get("changes") or {}))


@dataclass(frozen=True)
class DeleteTransitionResponse:
    success: bool
    message: str = ""
    remaining_transitions: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DeleteTransitionResponse:
        return cls(
            success=bool(payload.get("success", True)),
            message=payload.get("message", ""),
            remaining_transitions=payload.get("remaining_transitions"),
        )


# =============================================================================
# DERIVED RESULTS
# =============================================================================

@dataclass(frozen=True)
class ComputeRequest:
    input_string: str = ""
    max_steps: int = DEFAULT_COMPUTE_STEPS
    show_trace: bool = False

    def __post_init__(self):
        if self.max_steps <= 0:
            raise ValueError("Max steps must be positive")
        if self.max_steps > MAX_COMPUTE_STEPS:
            raise ValueError(f"Max steps must be less than or equal to {MAX_COMPUTE_STEPS}")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "input_string": self.input_string,
            "max_steps": self.max_steps,
            "show_trace": self.show_trace,
        }


@dataclass(frozen=True)
class TraceStep:
    state: str
    input: str
    stack: Tuple[str, ...]


@dataclass(frozen=True)
class ComputeResult:
    accepted: bool
    final_state: str
    final_stack: Tuple[str, ...]
    steps_taken: int
    trace: Optional[Tuple[TraceStep, ...]] = None
    reason: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ComputeResult:
        trace = None
        if payload.get("trace") is not None:
            trace = tuple(
                TraceStep(state=s["state"], input=s.get("input", ""), stack=tuple(s.get("stack") or ()))
                for s in payload["trace"]
            )
        return cls(
            accepted=bool(payload["accepted"]),
            final_state=payload["final_state"],
            final_stack=tuple(payload.get("final_stack") or ()),
            steps_taken=payload.get("steps_taken", 0),
            trace=trace,
            reason=payload.get("reason"),
        )


@dataclass(frozen=True)
class Violation:
    type: str
    description: str


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    violations: Tuple[Violation, ...] = ()
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ValidationResult:
        return cls(
            is_valid=bool(payload["is_valid"]),
            violations=tuple(
                Violation(type=v.get("type", ""), description=v.get("description", ""))
                for v in payload.get("violations") or ()
            ),
            message=payload.get("message", ""),
        )


@dataclass(frozen=True)
class ExportResult:
    format: ExportFormat
    data: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ExportResult:
        return cls(format=ExportFormat(payload["format"]), data=payload["data"])


@dataclass(frozen=True)
class VisualizationPayload:
    """Render-engine-agnostic graph payload; data layout depends on format."""
    format: VisualizationFormat
    data: Any

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> VisualizationPayload:
        return cls(format=VisualizationFormat(payload["format"]), data=payload.get("data"))


# =============================================================================
# ERRORS
# =============================================================================

@dataclass(frozen=True)
class ErrorResponse:
    """
    Error body read out of a failed response, for display.

    Reading it never replaces the exception that propagates.
    """
    error: str
    status_code: int
    detail: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> Optional[ErrorResponse]:
        if not isinstance(exc, httpx.HTTPStatusError):
            return None

        response = exc.response
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            return cls(error=response.reason_phrase or "HTTP error", status_code=response.status_code)

        detail = body.get("detail")
        return cls(
            error=str(body.get("error") or response.reason_phrase or "HTTP error"),
            status_code=int(body.get("status_code") or response.status_code),
            detail=str(detail) if detail is not None else None,
        )

    @property
    def message(self) -> str:
        return self.detail or self.error
