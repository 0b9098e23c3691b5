from .latch_manager import LatchManager, LatchMode, LatchCoupler, LatchTimeoutError

__all__ = ["LatchManager", "LatchMode", "LatchCoupler", "LatchTimeoutError"]
