"""CLI demonstration of a collaboration and a workflow run."""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import NoReturn

from beacon.core.errors import WorkflowStepError
from beacon.runtime import (
    get_collaboration_manager,
    get_registry,
    get_workflow_orchestrator,
    initialize_runtime,
    shutdown_runtime,
)


async def main(workflow_id: str = "revenue-gap-analysis") -> None:
    await initialize_runtime()
    try:
        registry = get_registry()
        for source in registry.list_available_data_sources():
            print(f"Data source {source['id']}: {source['name']} (agent={source['has_agent']})")

        manager = get_collaboration_manager()
        collaboration_id = await manager.start_collaboration(
            "Revenue gap analysis",
            "Which regions missed revenue targets last quarter and why?",
            "ncc-financial",
            ["pipeline-analytics", "attendance-analytics"],
        )
        summary = manager.get_collaboration_summary(collaboration_id)
        print(f"Collaboration {collaboration_id} {summary['status']} after {summary['turn_count']} turns")
        for insight in summary["insights"]:
            print(f"  * {insight}")

        orchestrator = get_workflow_orchestrator()
        try:
            orchestration_id = await orchestrator.execute_workflow(workflow_id)
        except WorkflowStepError as exc:
            print(f"Workflow {workflow_id} failed: {exc}")
            return
        result = orchestrator.get_orchestration_summary(orchestration_id)
        print(f"Workflow {workflow_id} {result['status']} in {result['duration']:.2f}s")
        for conclusion in result["conclusions"]:
            print(f"  - {conclusion}")
    finally:
        await shutdown_runtime()


def run() -> NoReturn:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(main(*sys.argv[1:2]))
    sys.exit(0)


if __name__ == "__main__":
    run()
