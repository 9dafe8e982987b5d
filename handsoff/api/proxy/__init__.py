from handsoff.api.proxy.routes import router

__all__ = ["router"]
