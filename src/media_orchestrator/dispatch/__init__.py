from media_orchestrator.dispatch.dispatcher import GenerationDispatcher, task_stream_url

__all__ = ["GenerationDispatcher", "task_stream_url"]
