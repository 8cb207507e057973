from .callbacks import with_callback, Callback

__all__ = ["with_callback", "Callback"]
