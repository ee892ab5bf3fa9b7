from importlib.metadata import version

try:
    __version__ = version("convo-search")
except Exception:
    __version__ = "unknown"
