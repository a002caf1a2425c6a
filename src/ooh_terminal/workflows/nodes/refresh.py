"""Generic refresh stages run for every category: fetch, parse, merge, persist."""
from __future__ import annotations

from ooh_terminal.workflows.context import WorkflowContext
from ooh_terminal.workflows.nodes import node_for
from ooh_terminal.workflows.state import RefreshState


async def fetch(state: RefreshState, context: WorkflowContext) -> RefreshState:
    """Call the provider; failures propagate so the orchestrator can isolate them."""
    logs = state.setdefault("logs", [])
    node = node_for(state["category"])
    request = node.build_request(context.cell.current, state.get("targets"))
    logs.append(f"Fetch -> {node.category.value} ({len(request.messages)} messages)")
    response = await context.invoke(request)
    state["raw_text"] = response.text
    return state


def parse(state: RefreshState, context: WorkflowContext) -> RefreshState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    node = node_for(state["category"])
    payload = node.parse(state.get("raw_text") or "", context.cell.current, state.get("targets"))
    if payload is None:
        errors.append(f"{node.category.value}: provider payload unusable")
        payload = node.fallback(context.cell.current)
        state["used_fallback"] = True
        logs.append(
            f"Parse -> {node.category.value} fallback {'applied' if payload is not None else 'skipped (data present)'}"
        )
    else:
        state["used_fallback"] = False
        logs.append(f"Parse -> {node.category.value} payload accepted")
    state["payload"] = payload
    return state


def merge(state: RefreshState, context: WorkflowContext) -> RefreshState:
    """Fold the payload into the latest snapshot in one synchronous step.

    Freshness is stamped only for a provider payload covering the whole
    tracked set; a fallback records an error instead.
    """
    node = node_for(state["category"])
    now = state["started_at"]
    snapshot = context.cell.current
    payload = state.get("payload")
    targets = state.get("targets")

    updated = snapshot if payload is None else node.merge(snapshot, payload, now, targets)
    if state.get("used_fallback"):
        updated = updated.mark_error(now)
    elif not targets:
        updated = updated.stamp(node.category.value, now)

    state["changed"] = updated is not snapshot
    if state["changed"]:
        context.cell.replace(updated)
    state.setdefault("logs", []).append(f"Merge -> {node.category.value} revision {updated.revision}")
    return state


def persist(state: RefreshState, context: WorkflowContext) -> RefreshState:
    if state.get("changed"):
        context.persist()
        state.setdefault("logs", []).append("Persist -> snapshot saved")
    return state
