class MirrorGateException(Exception):
    pass


class ConfigurationException(MirrorGateException):
    pass


class UpstreamUnreachableException(MirrorGateException):
    pass


class ProxyClientTimeoutException(UpstreamUnreachableException):
    pass


class TransformationException(MirrorGateException):
    pass
