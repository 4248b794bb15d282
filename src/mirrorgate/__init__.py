from mirrorgate.proxy import MirrorGate

__all__ = ["MirrorGate"]
