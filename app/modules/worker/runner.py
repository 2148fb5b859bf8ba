import asyncio
import logging
from typing import Awaitable, Callable, Dict

from app.core.db import SessionLocal

logger = logging.getLogger(__name__)

# Handlers receive the session factory plus the job kwargs
JobHandler = Callable[..., Awaitable[object]]

class Worker:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self.handlers: Dict[str, JobHandler] = {}
        self.queue: asyncio.Queue = asyncio.Queue()
        self.is_running = False
        self._task = None

    def register(self, task_name: str, handler: JobHandler):
        self.handlers[task_name] = handler

    async def start(self):
        """Starts the worker loop."""
        if self.is_running:
            return
        # Fresh queue per start: a queue binds to the loop it is first used on
        self.queue = asyncio.Queue()
        self.is_running = True
        self._task = asyncio.create_task(self._process_queue())
        logger.info("[Worker] Started.")

    async def stop(self):
        """Stops the worker loop."""
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Worker] Stopped.")

    async def enqueue_job(self, task_name: str, **kwargs):
        """Adds a job to the queue. Never waits on the job itself."""
        logger.debug(f"[Worker] Enqueuing job: {task_name}")
        self.queue.put_nowait((task_name, kwargs))

    async def drain(self):
        """Waits until every queued job has been processed."""
        await self.queue.join()

    async def _process_queue(self):
        """Main loop consuming jobs."""
        while self.is_running:
            try:
                task_name, kwargs = await self.queue.get()

                logger.info(f"[Worker] Processing: {task_name}")

                try:
                    handler = self.handlers.get(task_name)
                    if handler is None:
                        logger.warning(f"[Worker] No handler for job: {task_name}")
                    else:
                        await handler(self.session_factory, **kwargs)
                except Exception as e:
                    logger.error(f"[Worker] Job Failed: {task_name}: {e}", exc_info=True)
                finally:
                    self.queue.task_done()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[Worker] Loop Error: {e}")
                await asyncio.sleep(1)

# Global Worker Instance
worker = Worker()
