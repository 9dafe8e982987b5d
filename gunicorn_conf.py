# Gunicorn configuration file
#
#   gunicorn handsoff.main:app -c gunicorn_conf.py

import gc
import os

bind = os.getenv("GATEWAY_BIND", "0.0.0.0:8084")
workers = int(os.getenv("GATEWAY_WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"
# 流式响应可能持续较久，超时与上游读超时保持一致
timeout = int(os.getenv("GATEWAY_WORKER_TIMEOUT", "300"))
graceful_timeout = 30
preload_app = True


def when_ready(server):
    """
    Called just after the server is started.
    Freeze GC before forking workers to optimize Copy-on-Write memory sharing.
    """
    gc.freeze()
    server.log.info("GC frozen for Copy-on-Write optimization")
    server.log.info(f"Objects in permanent generation: {gc.get_freeze_count()}")


def post_fork(server, worker):
    try:
        import resource

        rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        server.log.info(f"Gateway worker {worker.pid} RSS after fork: {rss} KB")
    except ImportError:
        pass  # Windows 不支持 resource 模块
