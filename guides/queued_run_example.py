"""Queue a run for a worker and execute it with the same process.

With ``BUCKETCREW_TRANSPORT=redis`` the dispatcher and the worker can live in
separate processes (``bucketcrew worker start``).
"""

import asyncio
import uuid

from bucketcrew import RunDispatcher, RunRequest, RunWorker, WorkflowEngine
from bucketcrew import get_repository, get_transport, read_run_status
from bucketcrew.config import load_config


async def main():
    config = load_config()
    config.model.name = "test"
    repository = get_repository()
    transport = get_transport(config=config)
    await transport.connect()

    request = RunRequest(
        run_id=str(uuid.uuid4()),
        workspace_id="demo",
        template_id="sop-builder",
        user_input={"process_name": "Customer onboarding"},
    )
    await repository.create_run(
        request.run_id, request.workspace_id, request.template_id, request.user_input
    )

    dispatcher = RunDispatcher(queue=config.transport.queue)
    message_id = await dispatcher.submit(transport, request)
    print(f"Queued run {request.run_id} (message {message_id})")

    engine = WorkflowEngine.from_config(config, repository=repository)
    worker = RunWorker(transport, engine, queue=config.transport.queue)
    await worker.start(lifespan=5)

    view = await read_run_status(repository, request.run_id)
    print(f"Run {view.id}: {view.status.value}")
    if view.result:
        print(f"Deliverable: {view.result.title}")

    await transport.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
