"""Run the research-sprint template in-process and follow its progress."""

import asyncio
import uuid

from bucketcrew import WorkflowEngine, get_repository, stream_run
from bucketcrew.config import load_config
from bucketcrew.contracts import RetrievedChunk
from bucketcrew.retrieval import InMemoryRetriever


async def main():
    config = load_config()
    # "test" answers every step without calling a provider.
    config.model.name = "test"
    repository = get_repository()

    engine = WorkflowEngine.from_config(config, repository=repository)
    engine.retriever = InMemoryRetriever(
        [
            RetrievedChunk(
                id="chunk-1",
                file_id="file-1",
                workspace_id="demo",
                content="Bakery revenue grew 12% last year, mostly from cafe orders.",
                file_name="sales-2024.csv",
            )
        ]
    )

    user_input = {
        "business_description": "Neighbourhood bakery selling bread and pastries",
        "target_market": "Local families and cafes",
    }
    run_id = str(uuid.uuid4())
    await repository.create_run(run_id, "demo", "research-sprint", user_input)

    async def watch():
        async for update in stream_run(repository, run_id, poll_interval=0.1, lifespan=60):
            for entry in update.new_entries:
                print(f"[{entry.status}] {entry.agent}: {entry.message}")

    watcher = asyncio.create_task(watch())
    deliverable = await engine.execute_workflow(run_id, "demo", "research-sprint", user_input)
    await watcher

    print(f"Deliverable: {deliverable.title}")
    print(f"Summary: {deliverable.content.executive_summary}")
    print(f"Sources: {[s.name for s in deliverable.sources]}")


if __name__ == "__main__":
    asyncio.run(main())
