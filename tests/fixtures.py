"""
Test Fixtures

In-memory DPDA API served through httpx.MockTransport, plus fixed
definitions for deterministic scenarios.

The fake server records every call, so tests can assert exactly how many
requests reached the network.
"""

from typing import Any, Dict, List, Optional, Tuple
import asyncio
import json
import uuid

import httpx

from api.config import ClientConfig
from api.contracts import AlphabetsConfig, StatesConfig, Transition
from frontend.state import SyncContext


# =============================================================================
# FIXED DEFINITIONS
# =============================================================================

FIXED_SESSION_ID = "3f2b8c1e-9a4d-4e6f-8b2a-1c3d5e7f9a0b"
OTHER_SESSION_ID = "a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d"

TEST_CONFIG = ClientConfig(base_url="http://dpda.test", session_file=None)

STATES_Q012 = StatesConfig(states=("q0", "q1", "q2"), initial_state="q0", accept_states=("q2",))
ALPHABETS_01 = AlphabetsConfig(
    input_alphabet=("0", "1"), stack_alphabet=("$", "A"), initial_stack_symbol="$"
)
PUSH_A = Transition(from_state="q0", input_symbol="0", stack_top="$", to_state="q1", stack_push=("A", "$"))
POP_A = Transition(from_state="q1", input_symbol="1", stack_top="A", to_state="q2", stack_push=())


def run_in_context(server, scenario, config=TEST_CONFIG):
    """Run scenario(ctx) against the fake server inside a fresh SyncContext."""
    async def main():
        async with SyncContext.from_config(config, transport=server.transport()) as ctx:
            return await scenario(ctx)
    return asyncio.run(main())


def cytoscape_payload(nodes: List[str], edges: List[Tuple[str, str, str]]) -> Dict[str, Any]:
    elements: List[Dict[str, Any]] = [{"data": {"id": n, "label": n}} for n in nodes]
    for i, (source, target, label) in enumerate(edges):
        elements.append({"data": {"id": f"e{i}", "source": source, "target": target, "label": label}})
    return {"format": "cytoscape", "data": {"elements": elements}}


# =============================================================================
# FAKE SERVER
# =============================================================================

class FakeDpdaServer:
    """
    Minimal DPDA API with the remote's observable behavior.

    Transitions are addressed by position, exactly like the real API:
    deleting index 0 shifts every later entry.
    """

    def __init__(self):
        self.dpdas: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.session_ids: List[Optional[str]] = []
        self._forced: Dict[Tuple[str, str], Tuple[int, str]] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def fail_next(self, method: str, path: str, status: int = 500, detail: str = "Internal error") -> None:
        self._forced[(method, path)] = (status, detail)

    # =========================================================================
    # ROUTING
    # =========================================================================

    async def handle(self, request: httpx.Request) -> httpx.Response:
        # Yield once so concurrent callers genuinely overlap
        await asyncio.sleep(0)

        method, path = request.method, request.url.path
        self.calls.append((method, path))
        self.session_ids.append(request.headers.get("X-Session-ID"))

        forced = self._forced.pop((method, path), None)
        if forced is not None:
            return self._error(forced[0], forced[1])

        content = await request.aread()
        body = json.loads(content) if content else {}
        parts = path.strip("/").split("/")
        if parts[:2] != ["api", "dpda"] or len(parts) < 3:
            return self._error(404, "Not found")

        if parts[2] == "create" and method == "POST":
            return self._create(body)
        if parts[2] == "list" and method == "GET":
            return self._list()

        dpda = self.dpdas.get(parts[2])
        if dpda is None:
            return self._error(404, "DPDA not found")
        rest = parts[3:]

        if not rest:
            if method == "GET":
                return self._json(self._detail(dpda))
            if method == "PATCH":
                return self._update(dpda, body)
            if method == "DELETE":
                del self.dpdas[dpda["id"]]
                return self._json({"success": True, "message": "DPDA deleted"})
        elif rest == ["states"]:
            return self._states(dpda, method, body)
        elif rest == ["alphabets"]:
            return self._alphabets(dpda, method, body)
        elif rest == ["transitions"] and method == "GET":
            return self._json({"transitions": list(dpda["transitions"]), "total": len(dpda["transitions"])})
        elif rest == ["transition"] and method == "POST":
            dpda["transitions"].append(self._transition_body(body))
            return self._json({"success": True, "message": "Transition added"})
        elif len(rest) == 2 and rest[0] == "transition":
            return self._positional(dpda, method, int(rest[1]), body)
        elif rest == ["compute"] and method == "POST":
            return self._compute(dpda, body)
        elif rest == ["validate"] and method == "POST":
            return self._json(self._validate(dpda))
        elif rest == ["export"] and method == "GET":
            fmt = request.url.params.get("format", "json")
            return self._json({"format": fmt, "data": json.dumps(self._detail(dpda), sort_keys=True)})
        elif rest == ["visualize"] and method == "GET":
            return self._visualize(dpda, request.url.params.get("format", "cytoscape"))

        return self._error(405, "Method not allowed")

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _create(self, body: Dict[str, Any]) -> httpx.Response:
        dpda_id = str(uuid.uuid4())
        self.dpdas[dpda_id] = {
            "id": dpda_id,
            "name": body["name"],
            "description": body.get("description"),
            "states": [],
            "initial_state": None,
            "accept_states": [],
            "input_alphabet": [],
            "stack_alphabet": [],
            "initial_stack_symbol": None,
            "transitions": [],
        }
        return self._json({"id": dpda_id, "name": body["name"], "description": body.get("description")})

    def _list(self) -> httpx.Response:
        dpdas = [
            {
                "id": d["id"],
                "name": d["name"],
                "description": d["description"],
                "is_valid": self._validate(d)["is_valid"],
            }
            for d in self.dpdas.values()
        ]
        return self._json({"dpdas": dpdas, "total": len(dpdas)})

    def _update(self, dpda: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        changes = {}
        for field in ("name", "description"):
            if field in body:
                changes[field] = {"old": dpda[field], "new": body[field]}
                dpda[field] = body[field]
        return self._json({"changes": changes})

    def _states(self, dpda: Dict[str, Any], method: str, body: Dict[str, Any]) -> httpx.Response:
        merged = {k: dpda[k] for k in ("states", "initial_state", "accept_states")}
        if method == "PATCH":
            merged.update(body)
        else:
            merged = {"states": body["states"], "initial_state": body["initial_state"],
                      "accept_states": body.get("accept_states", [])}
        if merged["initial_state"] not in merged["states"]:
            return self._error(400, "Initial state not in states list")
        if not set(merged["accept_states"]) <= set(merged["states"]):
            return self._error(400, "Accept states not in states list")
        changes = {k: v for k, v in merged.items() if dpda[k] != v}
        dpda.update(merged)
        if method == "PATCH":
            return self._json({"changes": changes})
        return self._json({"success": True, "message": "States updated"})

    def _alphabets(self, dpda: Dict[str, Any], method: str, body: Dict[str, Any]) -> httpx.Response:
        merged = {k: dpda[k] for k in ("input_alphabet", "stack_alphabet", "initial_stack_symbol")}
        if method == "PATCH":
            merged.update(body)
        else:
            merged = {k: body[k] for k in merged}
        if merged["initial_stack_symbol"] not in merged["stack_alphabet"]:
            return self._error(400, "Initial stack symbol not in stack alphabet")
        changes = {k: v for k, v in merged.items() if dpda[k] != v}
        dpda.update(merged)
        if method == "PATCH":
            return self._json({"changes": changes})
        return self._json({"success": True, "message": "Alphabets updated"})

    def _positional(self, dpda: Dict[str, Any], method: str, index: int, body: Dict[str, Any]) -> httpx.Response:
        transitions = dpda["transitions"]
        if index >= len(transitions):
            return self._error(400, f"Transition index {index} out of range")
        if method == "DELETE":
            del transitions[index]
            return self._json({
                "success": True,
                "message": "Transition deleted",
                "remaining_transitions": len(transitions),
            })
        if method == "PUT":
            updated = dict(transitions[index])
            updated.update(body)
            changes = {k: v for k, v in updated.items() if transitions[index][k] != v}
            transitions[index] = updated
            return self._json({"changes": changes})
        return self._error(405, "Method not allowed")

    def _transition_body(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "from_state": body["from_state"],
            "input_symbol": body.get("input_symbol"),
            "stack_top": body.get("stack_top"),
            "to_state": body["to_state"],
            "stack_push": list(body.get("stack_push") or []),
        }

    def _validate(self, dpda: Dict[str, Any]) -> Dict[str, Any]:
        violations = []
        if not dpda["states"] or dpda["initial_state"] is None:
            violations.append({"type": "missing_states", "description": "States are not configured"})
        if not dpda["stack_alphabet"]:
            violations.append({"type": "missing_alphabets", "description": "Alphabets are not configured"})

        transitions = dpda["transitions"]
        for i, a in enumerate(transitions):
            for b in transitions[i + 1:]:
                if a["from_state"] != b["from_state"]:
                    continue
                inputs_overlap = a["input_symbol"] is None or b["input_symbol"] is None \
                    or a["input_symbol"] == b["input_symbol"]
                tops_overlap = a["stack_top"] is None or b["stack_top"] is None \
                    or a["stack_top"] == b["stack_top"]
                if inputs_overlap and tops_overlap:
                    violations.append({
                        "type": "nondeterminism",
                        "description": f"Conflicting transitions from {a['from_state']}",
                    })

        is_valid = not violations
        return {
            "is_valid": is_valid,
            "violations": violations,
            "message": "DPDA is valid" if is_valid else "DPDA has violations",
        }

    def _compute(self, dpda: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        if not self._validate(dpda)["is_valid"]:
            return self._error(400, "DPDA is not valid")

        word = body.get("input_string", "")
        max_steps = body.get("max_steps", 10000)
        state = dpda["initial_state"]
        stack = [dpda["initial_stack_symbol"]]  # top first
        pos = 0
        steps = 0
        trace = [{"state": state, "input": word, "stack": list(stack)}]

        while steps < max_steps:
            rule = self._applicable(dpda, state, word[pos] if pos < len(word) else None, stack)
            if rule is None:
                break
            if rule["input_symbol"] is not None:
                pos += 1
            if rule["stack_top"] is not None:
                stack = stack[1:]
            stack = list(rule["stack_push"]) + stack
            state = rule["to_state"]
            steps += 1
            trace.append({"state": state, "input": word[pos:], "stack": list(stack)})

        accepted = pos == len(word) and state in dpda["accept_states"]
        result = {
            "accepted": accepted,
            "final_state": state,
            "final_stack": stack,
            "steps_taken": steps,
        }
        if body.get("show_trace"):
            result["trace"] = trace
        if not accepted:
            result["reason"] = "Input not consumed" if pos < len(word) else "Not in an accept state"
        return self._json(result)

    def _applicable(self, dpda, state, symbol, stack) -> Optional[Dict[str, Any]]:
        top = stack[0] if stack else None
        epsilon = None
        for rule in dpda["transitions"]:
            if rule["from_state"] != state:
                continue
            if rule["stack_top"] is not None and rule["stack_top"] != top:
                continue
            if rule["input_symbol"] is None:
                epsilon = epsilon or rule
            elif symbol is not None and rule["input_symbol"] == symbol:
                return rule
        return epsilon

    def _visualize(self, dpda: Dict[str, Any], fmt: str) -> httpx.Response:
        edges = []
        for i, t in enumerate(dpda["transitions"]):
            label = f"{t['input_symbol'] or 'ε'}, {t['stack_top'] or 'ε'} → {''.join(t['stack_push']) or 'ε'}"
            edges.append((f"e{i}", t["from_state"], t["to_state"], label))

        def flags(s):
            return {"is_initial": s == dpda["initial_state"], "is_accept": s in dpda["accept_states"]}

        if fmt == "d3":
            data = {
                "nodes": [dict(id=s, label=s, **flags(s)) for s in dpda["states"]],
                "links": [{"source": src, "target": dst, "label": lab} for _, src, dst, lab in edges],
            }
        elif fmt == "dot":
            lines = [f'  "{src}" -> "{dst}" [label="{lab}"];' for _, src, dst, lab in edges]
            data = "digraph DPDA {\n" + "\n".join(lines) + "\n}"
        else:
            data = {"elements": [{"data": dict(id=s, label=s, **flags(s))} for s in dpda["states"]] + [
                {"data": {"id": eid, "source": src, "target": dst, "label": lab}}
                for eid, src, dst, lab in edges
            ]}
        return self._json({"format": fmt, "data": data})

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _detail(self, dpda: Dict[str, Any]) -> Dict[str, Any]:
        detail = dict(dpda)
        detail["transitions"] = list(dpda["transitions"])
        detail["is_valid"] = self._validate(dpda)["is_valid"]
        return detail

    def _json(self, payload: Any, status: int = 200) -> httpx.Response:
        return httpx.Response(status, json=payload)

    def _error(self, status: int, detail: str) -> httpx.Response:
        error = {400: "Bad Request", 404: "Not Found", 405: "Method Not Allowed"}.get(status, "Server Error")
        return httpx.Response(status, json={"error": error, "detail": detail, "status_code": status})
